"""Feedback API — intake and inspection of feedback records."""
from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from feedback_aggregator.config import settings
from feedback_aggregator.errors import FeedbackValidationError
from feedback_aggregator.intake import parse_feedback
from feedback_aggregator.metrics import FEEDBACK_INGESTED_TOTAL, FEEDBACK_REJECTED_TOTAL
from feedback_aggregator.schemas.feedback import (
    FeedbackQuery,
    FeedbackSource,
    FeedbackStatus,
)
from feedback_aggregator.store import FeedbackStore, get_store

router = APIRouter(prefix="/feedback", tags=["feedback"])
logger = logging.getLogger(__name__)


@router.post("", status_code=201)
async def ingest_feedback(
    request: Request,
    store: FeedbackStore = Depends(get_store),
) -> JSONResponse:
    """Validate an inbound payload and persist it as a pending record."""
    try:
        body: Any = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        FEEDBACK_REJECTED_TOTAL.labels(reason="malformed_json").inc()
        raise FeedbackValidationError("Request body must be valid JSON")

    try:
        record = parse_feedback(body)
    except FeedbackValidationError:
        FEEDBACK_REJECTED_TOTAL.labels(reason="invalid_payload").inc()
        raise

    await store.insert(record)
    FEEDBACK_INGESTED_TOTAL.labels(source=record.source.value).inc()
    logger.info("Feedback %s stored from %s", record.id, record.source.value)
    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "id": record.id,
            "message": "Feedback stored successfully and queued for processing.",
        },
    )


@router.get("")
async def list_feedback(
    source: FeedbackSource | None = None,
    status: FeedbackStatus | None = None,
    limit: int = Query(
        default=settings.FEEDBACK_QUERY_DEFAULT_LIMIT,
        ge=1,
        le=settings.FEEDBACK_QUERY_MAX_LIMIT,
    ),
    offset: int = Query(default=0, ge=0),
    store: FeedbackStore = Depends(get_store),
) -> dict[str, Any]:
    """Newest-first listing filtered by source and/or status."""
    records = await store.query(
        FeedbackQuery(source=source, status=status, limit=limit, offset=offset)
    )
    data = [record.to_wire() for record in records]
    return {"success": True, "data": data, "count": len(data)}
