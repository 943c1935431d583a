from __future__ import annotations

import enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class FeedbackSource(str, enum.Enum):
    SUPPORT = "support"
    DISCORD = "discord"
    GITHUB = "github"
    EMAIL = "email"
    TWITTER = "twitter"
    FORUM = "forum"


class FeedbackStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"


class FeedbackRecord(BaseModel):
    """A well-formed feedback record, as persisted and relayed."""

    id: str = Field(min_length=1)
    source: FeedbackSource
    source_id: Optional[str] = None
    title: Optional[str] = None
    content: str = Field(min_length=1)
    author: Optional[str] = None
    author_email: Optional[str] = None
    status: FeedbackStatus = FeedbackStatus.PENDING
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: int
    updated_at: int

    @model_validator(mode="after")
    def validate_timestamps(self) -> "FeedbackRecord":
        if self.updated_at < self.created_at:
            raise ValueError("updated_at must not be earlier than created_at")
        return self

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with enum values flattened."""
        return self.model_dump(mode="json")


class FeedbackQuery(BaseModel):
    """Equality filters and paging for record inspection."""

    id: Optional[str] = None
    source: Optional[FeedbackSource] = None
    status: Optional[FeedbackStatus] = None
    limit: int = Field(default=50, ge=1)
    offset: int = Field(default=0, ge=0)
