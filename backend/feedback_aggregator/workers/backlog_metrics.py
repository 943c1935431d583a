"""Pending backlog probe (best-effort).

Publishes the number of pending feedback records per source so operators
can see the relay falling behind.
"""
from __future__ import annotations

import asyncio
import logging

from feedback_aggregator.celery_app import celery
from feedback_aggregator.db import engine
from feedback_aggregator.errors import StorageError
from feedback_aggregator.metrics import PENDING_BACKLOG_GAUGE
from feedback_aggregator.schemas.feedback import FeedbackSource
from feedback_aggregator.store import FeedbackStore, get_store

logger = logging.getLogger(__name__)


def publish_backlog(counts: dict[str, int]) -> None:
    # Sources with nothing pending are reset to zero rather than left stale.
    known_sources = {s.value for s in FeedbackSource}
    for source in known_sources | set(counts):
        PENDING_BACKLOG_GAUGE.labels(source=source).set(float(counts.get(source, 0)))


async def probe_backlog(store: FeedbackStore) -> dict[str, int]:
    counts = await store.count_pending_by_source()
    publish_backlog(counts)
    return counts


@celery.task(name="feedback_aggregator.workers.backlog_metrics.run_backlog_probe")
def run_backlog_probe() -> None:
    """Periodic pending backlog gauge refresh."""
    asyncio.run(_async_run_backlog_probe())


async def _async_run_backlog_probe() -> None:
    try:
        await probe_backlog(get_store())
    except StorageError as exc:
        logger.warning("Backlog probe failed: %s", exc)
    finally:
        await engine.dispose()
