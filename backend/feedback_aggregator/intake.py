"""Intake validation — turns an untyped inbound payload into a FeedbackRecord.

Parsing is pure: the clock and id generator are injected so callers (and
tests) control every default. Caller-supplied ``created_at``/``updated_at``
are trusted verbatim; they are never compared against the clock.
"""
from __future__ import annotations

import secrets
import string
import time
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from feedback_aggregator.errors import FeedbackValidationError
from feedback_aggregator.schemas.feedback import (
    FeedbackRecord,
    FeedbackSource,
    FeedbackStatus,
)

Clock = Callable[[], int]
IdFactory = Callable[[], str]

REQUIRED_FIELDS_MESSAGE = "Invalid feedback data. Required: source, content"

_ID_ALPHABET = string.ascii_lowercase + string.digits


def current_timestamp() -> int:
    """Current time in whole seconds since epoch."""
    return int(time.time())


def generate_feedback_id() -> str:
    """``fb-<epoch millis>-<7 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"fb-{int(time.time() * 1000)}-{suffix}"


class FeedbackPayload(BaseModel):
    """Shape check for the inbound body; defaults are applied afterwards."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    source: Optional[FeedbackSource] = None
    source_id: Optional[str] = None
    title: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    author_email: Optional[str] = None
    status: Optional[FeedbackStatus] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[int] = Field(default=None, ge=0)
    updated_at: Optional[int] = Field(default=None, ge=0)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def _blank(value: str | None) -> str | None:
    return value or None


def parse_feedback(
    raw: Any,
    *,
    clock: Clock = current_timestamp,
    id_factory: IdFactory = generate_feedback_id,
) -> FeedbackRecord:
    """Validate ``raw`` and complete it into a FeedbackRecord.

    Raises FeedbackValidationError when ``content`` or ``source`` is missing,
    empty or unrecognised, or when any other field has the wrong shape.
    Empty-string ids and zero timestamps count as absent.
    """
    if not isinstance(raw, dict):
        raise FeedbackValidationError(REQUIRED_FIELDS_MESSAGE)
    content = raw.get("content")
    if not raw.get("source") or not isinstance(content, str) or not content.strip():
        raise FeedbackValidationError(REQUIRED_FIELDS_MESSAGE)

    try:
        payload = FeedbackPayload.model_validate(raw)
    except ValidationError as exc:
        raise FeedbackValidationError(_describe(exc)) from exc

    now = clock()
    created_at = payload.created_at or now
    updated_at = payload.updated_at or max(now, created_at)

    try:
        return FeedbackRecord(
            id=payload.id or id_factory(),
            source=payload.source,
            source_id=_blank(payload.source_id),
            title=_blank(payload.title),
            content=content,
            author=_blank(payload.author),
            author_email=_blank(payload.author_email),
            status=payload.status or FeedbackStatus.PENDING,
            metadata=payload.metadata or {},
            created_at=created_at,
            updated_at=updated_at,
        )
    except ValidationError as exc:
        raise FeedbackValidationError(_describe(exc)) from exc
