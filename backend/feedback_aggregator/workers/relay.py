"""Relay worker — periodic relay pass triggered by Celery beat."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from feedback_aggregator.celery_app import celery
from feedback_aggregator.config import settings
from feedback_aggregator.db import engine
from feedback_aggregator.metrics import RELAY_RUNS_TOTAL
from feedback_aggregator.relay import relay_pending
from feedback_aggregator.store import get_store
from feedback_aggregator.workflow_client import WorkflowClient

logger = logging.getLogger(__name__)


@celery.task(name="feedback_aggregator.workers.relay.run_relay")
def run_relay(batch_size: int | None = None) -> dict[str, Any]:
    """Drain one batch of pending feedback to the workflow service."""
    return asyncio.run(_async_run_relay(batch_size or settings.RELAY_BATCH_SIZE))


async def _async_run_relay(batch_size: int) -> dict[str, Any]:
    RELAY_RUNS_TOTAL.labels(trigger="beat").inc()
    try:
        result = await relay_pending(get_store(), WorkflowClient(), batch_size=batch_size)
    finally:
        # Pooled connections are bound to this event loop; asyncio.run closes it.
        await engine.dispose()
    if result.failed:
        logger.warning(
            "Relay left %d feedback items pending", result.failed,
            extra={"errors": result.error_entries()},
        )
    return result.summary()
