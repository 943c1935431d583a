"""Relay loop — drains pending feedback to the workflow service.

One pass fetches a bounded batch of pending records, oldest first, and
submits them one at a time. A record becomes ``processed`` only when the
workflow service accepts it; every other outcome leaves it ``pending`` for
the next pass and is reported as a RelayItemError.

No ``processing`` marker is written before submission. Two concurrent passes
can therefore submit the same record twice (at-least-once delivery);
callers needing exactly-once must serialize passes themselves.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from feedback_aggregator.config import settings
from feedback_aggregator.errors import RelayItemError
from feedback_aggregator.intake import Clock, current_timestamp
from feedback_aggregator.metrics import RELAY_ITEMS_TOTAL, RELAY_SUBMIT_LATENCY_SECONDS
from feedback_aggregator.schemas.feedback import FeedbackRecord, FeedbackStatus
from feedback_aggregator.store import FeedbackStore
from feedback_aggregator.workflow_client import FeedbackProcessor

logger = logging.getLogger(__name__)


@dataclass
class RelayResult:
    processed: int = 0
    failed: int = 0
    errors: list[RelayItemError] = field(default_factory=list)

    def error_entries(self) -> list[dict[str, str]]:
        return [err.as_dict() for err in self.errors]

    def summary(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "errors": self.error_entries(),
        }


async def _relay_one(
    record: FeedbackRecord,
    *,
    store: FeedbackStore,
    processor: FeedbackProcessor,
    submit_timeout: float,
    clock: Clock,
) -> RelayItemError | None:
    started = time.perf_counter()
    try:
        outcome = await asyncio.wait_for(processor.submit(record), timeout=submit_timeout)
    except asyncio.TimeoutError:
        RELAY_ITEMS_TOTAL.labels(outcome="timeout").inc()
        return RelayItemError(
            record.id, f"Workflow service timed out after {submit_timeout:g}s"
        )
    except Exception as exc:
        RELAY_ITEMS_TOTAL.labels(outcome="error").inc()
        return RelayItemError(record.id, str(exc) or exc.__class__.__name__)
    finally:
        RELAY_SUBMIT_LATENCY_SECONDS.observe(time.perf_counter() - started)

    if not outcome.ok:
        RELAY_ITEMS_TOTAL.labels(outcome="rejected").inc()
        return RelayItemError(
            record.id,
            f"Workflow service returned {outcome.status_code} - {outcome.detail or 'Unknown error'}",
        )

    try:
        await store.update_status(record.id, FeedbackStatus.PROCESSED, clock())
    except Exception as exc:
        RELAY_ITEMS_TOTAL.labels(outcome="error").inc()
        return RelayItemError(record.id, f"Status update failed: {str(exc) or exc.__class__.__name__}")

    RELAY_ITEMS_TOTAL.labels(outcome="processed").inc()
    return None


async def relay_pending(
    store: FeedbackStore,
    processor: FeedbackProcessor,
    *,
    batch_size: int | None = None,
    submit_timeout: float | None = None,
    clock: Clock = current_timestamp,
) -> RelayResult:
    """Run one relay pass.

    Per-record failures are collected in the result, never raised. A
    StorageError from fetching the batch itself propagates: nothing was
    attempted, so there is nothing to report per record.
    """
    limit = batch_size if batch_size is not None else settings.RELAY_BATCH_SIZE
    timeout = submit_timeout if submit_timeout is not None else settings.RELAY_SUBMIT_TIMEOUT_S

    batch = await store.list_pending(limit)
    result = RelayResult()
    if not batch:
        return result

    for record in batch:
        error = await _relay_one(
            record,
            store=store,
            processor=processor,
            submit_timeout=timeout,
            clock=clock,
        )
        if error is None:
            result.processed += 1
            continue
        logger.warning(str(error), extra={"feedback_id": record.id})
        result.errors.append(error)
        result.failed += 1

    logger.info(
        "Relay pass finished: %d processed, %d failed",
        result.processed,
        result.failed,
        extra={"batch_size": len(batch)},
    )
    return result
