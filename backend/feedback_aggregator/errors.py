"""Error taxonomy for intake, storage and relay."""
from __future__ import annotations


class FeedbackServiceError(Exception):
    """Base class for errors raised by the feedback core."""


class FeedbackValidationError(FeedbackServiceError):
    """Inbound payload is malformed or incomplete. Never retried."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class StorageError(FeedbackServiceError):
    """Backend unavailable, constraint violation or corrupt stored data."""


class DuplicateFeedbackError(StorageError):
    """A record with the same id already exists."""

    def __init__(self, feedback_id: str):
        super().__init__(f"Feedback {feedback_id} already exists")
        self.feedback_id = feedback_id


class RelayItemError(FeedbackServiceError):
    """One record failed to relay; the record stays pending."""

    def __init__(self, record_id: str, reason: str):
        super().__init__(f"Feedback {record_id}: {reason}")
        self.record_id = record_id
        self.reason = reason

    def as_dict(self) -> dict[str, str]:
        return {"id": self.record_id, "reason": self.reason}
