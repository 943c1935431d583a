"""
Pytest configuration for feedback aggregator tests.
Points the application at a throwaway SQLite database before any imports.
"""

import asyncio
import os
import tempfile

_test_data_dir = tempfile.mkdtemp(prefix="feedback_aggregator_test_")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_test_data_dir}/app.db")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("WORKFLOW_SERVICE_URL", "http://workflow.test")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_aggregator.db import build_engine, create_tables
from feedback_aggregator.schemas.feedback import FeedbackRecord
from feedback_aggregator.store import FeedbackStore
from feedback_aggregator.workflow_client import SubmitOutcome


class FakeProcessor:
    """Workflow stand-in: per-id status codes or exceptions, 200 by default."""

    def __init__(self, responses=None, default=200, delay=0.0):
        self.responses = dict(responses or {})
        self.default = default
        self.delay = delay
        self.calls = []

    async def submit(self, record):
        self.calls.append(record.id)
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.responses.get(record.id, self.default)
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome == 200:
            return SubmitOutcome(ok=True, status_code=200)
        return SubmitOutcome(ok=False, status_code=outcome, detail="workflow busy")


@pytest.fixture
async def session_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'feedback.db'}")
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return FeedbackStore(session_factory)


@pytest.fixture
def processor_factory():
    return FakeProcessor


@pytest.fixture
def make_record():
    def _make(feedback_id: str, created_at: int = 1, **overrides) -> FeedbackRecord:
        fields = {
            "id": feedback_id,
            "source": "github",
            "content": f"content of {feedback_id}",
            "created_at": created_at,
            "updated_at": created_at,
        }
        fields.update(overrides)
        return FeedbackRecord(**fields)

    return _make
