"""Models package — re-export all ORM classes for metadata auto-detection."""
from feedback_aggregator.models.feedback import FeedbackRow  # noqa: F401
