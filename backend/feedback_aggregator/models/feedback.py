"""FeedbackRow model — durable feedback records awaiting relay."""
from __future__ import annotations

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from feedback_aggregator.db import Base


class FeedbackRow(Base):
    """One inbound feedback item and its relay status."""

    __tablename__ = "feedback"
    __table_args__ = (
        Index("ix_feedback_status_created_at", "status", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    source: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True,
        comment="support | discord | github | email | twitter | forum",
    )
    source_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str | None] = mapped_column(String(256), nullable=True)
    author_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="pending",
        comment="pending | processing | processed",
    )
    metadata_json: Mapped[str | None] = mapped_column("metadata", Text, nullable=True)
    # Seconds since epoch, as supplied by intake.
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<FeedbackRow id={self.id} source={self.source} status={self.status}>"
