from __future__ import annotations

import asyncio

import httpx
import pytest

from feedback_aggregator.errors import StorageError
from feedback_aggregator.relay import relay_pending
from feedback_aggregator.schemas.feedback import FeedbackQuery, FeedbackStatus


class _EmptyStore:
    def __init__(self) -> None:
        self.limits: list[int] = []

    async def list_pending(self, limit):
        self.limits.append(limit)
        return []

    async def update_status(self, *args, **kwargs):
        raise AssertionError("store must not be touched")


class _FailingUpdateStore:
    def __init__(self, records, error=None) -> None:
        self.records = records
        self.error = error or StorageError("database is locked")

    async def list_pending(self, limit):
        return self.records[:limit]

    async def update_status(self, feedback_id, status, now):
        raise self.error


async def test_failed_item_stays_pending_and_is_retried(store, make_record, processor_factory) -> None:
    for i in (1, 2, 3):
        await store.insert(make_record(f"fb-{i}", created_at=i))
    processor = processor_factory(responses={"fb-2": 503})

    first = await relay_pending(store, processor, clock=lambda: 500)
    assert (first.processed, first.failed) == (2, 1)
    assert first.error_entries() == [
        {"id": "fb-2", "reason": "Workflow service returned 503 - workflow busy"}
    ]
    assert processor.calls == ["fb-1", "fb-2", "fb-3"]
    assert (await store.get("fb-2")).status == FeedbackStatus.PENDING
    assert (await store.get("fb-1")).updated_at == 500

    processor.responses["fb-2"] = 200
    second = await relay_pending(store, processor, clock=lambda: 600)
    assert (second.processed, second.failed, second.errors) == (1, 0, [])
    assert await store.list_pending(10) == []


async def test_empty_batch_is_a_no_op(processor_factory) -> None:
    empty = _EmptyStore()
    processor = processor_factory()

    result = await relay_pending(empty, processor, batch_size=10)
    assert result.summary() == {"processed": 0, "failed": 0, "errors": []}
    assert empty.limits == [10]
    assert processor.calls == []


async def test_batch_size_bounds_one_pass(store, make_record, processor_factory) -> None:
    for i in (1, 2, 3):
        await store.insert(make_record(f"fb-{i}", created_at=i))
    processor = processor_factory()

    result = await relay_pending(store, processor, batch_size=2)
    assert result.processed == 2
    assert [r.id for r in await store.list_pending(10)] == ["fb-3"]


async def test_transport_error_is_captured_and_batch_continues(store, make_record, processor_factory) -> None:
    await store.insert(make_record("fb-1", created_at=1))
    await store.insert(make_record("fb-2", created_at=2))
    processor = processor_factory(responses={"fb-1": httpx.ConnectError("connection refused")})

    result = await relay_pending(store, processor)
    assert (result.processed, result.failed) == (1, 1)
    assert result.errors[0].record_id == "fb-1"
    assert "connection refused" in result.errors[0].reason
    assert (await store.get("fb-1")).status == FeedbackStatus.PENDING
    assert (await store.get("fb-2")).status == FeedbackStatus.PROCESSED


async def test_stalled_submission_times_out(store, make_record, processor_factory) -> None:
    await store.insert(make_record("slow", created_at=1))
    processor = processor_factory(delay=1.0)

    result = await relay_pending(store, processor, submit_timeout=0.05)
    assert (result.processed, result.failed) == (0, 1)
    assert "timed out" in result.errors[0].reason
    assert (await store.get("slow")).status == FeedbackStatus.PENDING


async def test_status_update_failure_is_reported_per_item(make_record, processor_factory) -> None:
    records = [make_record("fb-1", created_at=1), make_record("fb-2", created_at=2)]
    processor = processor_factory()

    result = await relay_pending(_FailingUpdateStore(records), processor)
    assert (result.processed, result.failed) == (0, 2)
    assert processor.calls == ["fb-1", "fb-2"]
    assert all("database is locked" in e.reason for e in result.errors)


async def test_list_pending_failure_propagates(processor_factory) -> None:
    class _DownStore:
        async def list_pending(self, limit):
            raise StorageError("store unavailable")

    with pytest.raises(StorageError):
        await relay_pending(_DownStore(), processor_factory())


async def test_concurrent_passes_can_deliver_twice(store, make_record, processor_factory) -> None:
    # At-least-once: no in-flight marker, so overlapping passes both submit.
    await store.insert(make_record("fb-1", created_at=1))
    processor = processor_factory(delay=0.05)

    results = await asyncio.gather(
        relay_pending(store, processor),
        relay_pending(store, processor),
    )
    assert processor.calls == ["fb-1", "fb-1"]
    assert sum(r.processed for r in results) == 2
    rows = await store.query(FeedbackQuery(status=FeedbackStatus.PROCESSED))
    assert [r.id for r in rows] == ["fb-1"]


async def test_unexpected_update_error_is_captured_per_item(make_record, processor_factory) -> None:
    records = [make_record("fb-1", created_at=1), make_record("fb-2", created_at=2)]
    processor = processor_factory()
    store = _FailingUpdateStore(records, error=RuntimeError("driver exploded"))

    result = await relay_pending(store, processor)
    assert (result.processed, result.failed) == (0, 2)
    assert processor.calls == ["fb-1", "fb-2"]
    assert [e.record_id for e in result.errors] == ["fb-1", "fb-2"]
    assert all("driver exploded" in e.reason for e in result.errors)


async def test_future_dated_record_stays_readable_after_relay(store, make_record, processor_factory) -> None:
    await store.insert(make_record("future", created_at=1_800_000_000))

    result = await relay_pending(store, processor_factory(), clock=lambda: 1_700_000_100)
    assert result.processed == 1

    rows = await store.query(FeedbackQuery())
    assert [r.id for r in rows] == ["future"]
    assert rows[0].status == FeedbackStatus.PROCESSED
    assert rows[0].updated_at == rows[0].created_at == 1_800_000_000


async def test_explicit_zero_batch_size_relays_nothing(store, make_record, processor_factory) -> None:
    await store.insert(make_record("fb-1", created_at=1))
    processor = processor_factory()

    result = await relay_pending(store, processor, batch_size=0)
    assert (result.processed, result.failed) == (0, 0)
    assert processor.calls == []
    assert [r.id for r in await store.list_pending(10)] == ["fb-1"]
