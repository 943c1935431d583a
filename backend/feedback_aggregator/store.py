"""Record store — durable feedback table over async SQLAlchemy.

Every method runs in its own session and commits before returning, so a
record is either fully visible or not visible at all. Database failures
surface as StorageError; a missing id on update is a silent no-op.
"""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from pydantic import ValidationError
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedback_aggregator.db import async_session_factory
from feedback_aggregator.errors import DuplicateFeedbackError, StorageError
from feedback_aggregator.models.feedback import FeedbackRow
from feedback_aggregator.schemas.feedback import (
    FeedbackQuery,
    FeedbackRecord,
    FeedbackStatus,
)

logger = logging.getLogger(__name__)


def _to_row(record: FeedbackRecord) -> FeedbackRow:
    return FeedbackRow(
        id=record.id,
        source=record.source.value,
        source_id=record.source_id,
        title=record.title,
        content=record.content,
        author=record.author,
        author_email=record.author_email,
        status=record.status.value,
        metadata_json=json.dumps(record.metadata, ensure_ascii=False),
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _to_record(row: FeedbackRow) -> FeedbackRecord:
    metadata: object = {}
    if row.metadata_json:
        try:
            metadata = json.loads(row.metadata_json)
        except ValueError as exc:
            raise StorageError(f"Feedback {row.id}: corrupt metadata blob ({exc})") from exc
    if not isinstance(metadata, dict):
        raise StorageError(f"Feedback {row.id}: metadata blob is not an object")
    try:
        return FeedbackRecord(
            id=row.id,
            source=row.source,
            source_id=row.source_id,
            title=row.title,
            content=row.content,
            author=row.author,
            author_email=row.author_email,
            status=row.status,
            metadata=metadata,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
    except ValidationError as exc:
        raise StorageError(f"Feedback {row.id}: stored row is invalid ({exc})") from exc


class FeedbackStore:
    """Append, point-update and range queries over the feedback table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except StorageError:
            raise
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError(f"Feedback store unavailable: {exc}") from exc

    async def insert(self, record: FeedbackRecord) -> None:
        try:
            row = _to_row(record)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Feedback {record.id}: metadata is not JSON serializable ({exc})") from exc
        async with self._session() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateFeedbackError(record.id) from exc

    async def get(self, feedback_id: str) -> FeedbackRecord | None:
        async with self._session() as session:
            row = await session.get(FeedbackRow, feedback_id)
            return _to_record(row) if row is not None else None

    async def update_status(
        self, feedback_id: str, status: FeedbackStatus, now: int
    ) -> bool:
        """Set status and ``updated_at``; returns whether a row matched.

        ``updated_at`` never drops below ``created_at``, which callers may
        have supplied from the future.
        """
        async with self._session() as session:
            result = await session.execute(
                update(FeedbackRow)
                .where(FeedbackRow.id == feedback_id)
                .values(
                    status=FeedbackStatus(status).value,
                    updated_at=case(
                        (FeedbackRow.created_at > now, FeedbackRow.created_at),
                        else_=now,
                    ),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        matched = bool(result.rowcount)
        if not matched:
            logger.debug("Status update for unknown feedback %s ignored", feedback_id)
        return matched

    async def query(self, query: FeedbackQuery) -> list[FeedbackRecord]:
        """Newest first, filtered by the optional equality fields."""
        stmt = select(FeedbackRow)
        if query.id:
            stmt = stmt.where(FeedbackRow.id == query.id)
        if query.source:
            stmt = stmt.where(FeedbackRow.source == query.source.value)
        if query.status:
            stmt = stmt.where(FeedbackRow.status == query.status.value)
        stmt = (
            stmt.order_by(FeedbackRow.created_at.desc(), FeedbackRow.id.desc())
            .limit(query.limit)
            .offset(query.offset)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_record(row) for row in rows]

    async def list_pending(self, limit: int) -> list[FeedbackRecord]:
        """Oldest pending records first, so none starves behind newer ones."""
        stmt = (
            select(FeedbackRow)
            .where(FeedbackRow.status == FeedbackStatus.PENDING.value)
            .order_by(FeedbackRow.created_at.asc(), FeedbackRow.id.asc())
            .limit(limit)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_record(row) for row in rows]

    async def count_pending_by_source(self) -> dict[str, int]:
        stmt = (
            select(FeedbackRow.source, func.count())
            .where(FeedbackRow.status == FeedbackStatus.PENDING.value)
            .group_by(FeedbackRow.source)
        )
        async with self._session() as session:
            rows = (await session.execute(stmt)).all()
            return {str(source): int(count) for source, count in rows}


def get_store() -> FeedbackStore:
    """FastAPI dependency — store bound to the application engine."""
    return FeedbackStore(async_session_factory)
