"""Relay trigger API — runs one relay pass on demand."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends

from feedback_aggregator.metrics import RELAY_RUNS_TOTAL
from feedback_aggregator.relay import RelayResult, relay_pending
from feedback_aggregator.store import FeedbackStore, get_store
from feedback_aggregator.workflow_client import FeedbackProcessor, get_processor

router = APIRouter(tags=["relay"])
logger = logging.getLogger(__name__)

# Passes still running after their request went away.
_inflight_passes: set[asyncio.Task[RelayResult]] = set()


def _on_pass_done(task: asyncio.Task[RelayResult]) -> None:
    _inflight_passes.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Relay pass failed: %s", exc, exc_info=exc)


def start_relay_pass(store: FeedbackStore, processor: FeedbackProcessor) -> asyncio.Task[RelayResult]:
    """Run a relay pass as a task that outlives request cancellation."""
    task = asyncio.create_task(relay_pending(store, processor))
    _inflight_passes.add(task)
    task.add_done_callback(_on_pass_done)
    return task


@router.post("/process-queue")
async def process_queue(
    store: FeedbackStore = Depends(get_store),
    processor: FeedbackProcessor = Depends(get_processor),
) -> dict[str, Any]:
    """Relay up to one batch of pending feedback to the workflow service."""
    RELAY_RUNS_TOTAL.labels(trigger="api").inc()
    # A client disconnect must not abandon submissions already in flight.
    result = await asyncio.shield(start_relay_pass(store, processor))

    payload: dict[str, Any] = {
        "success": True,
        "processed": result.processed,
        "failed": result.failed,
        "message": f"Processed {result.processed} feedback items, {result.failed} failed",
    }
    if result.errors:
        payload["errors"] = result.error_entries()
    return payload
