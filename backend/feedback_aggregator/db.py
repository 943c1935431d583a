"""Async SQLAlchemy engine + session factory."""
from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from feedback_aggregator.config import settings


def _engine_kwargs(url: str) -> dict[str, Any]:
    # SQLite drivers reject queue-pool sizing arguments.
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo, **_engine_kwargs(url))


engine = build_engine(
    settings.DATABASE_URL,
    echo=(settings.APP_ENV == "development"),
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base used by all ORM models."""


async def create_tables(bind: AsyncEngine | None = None) -> None:
    """Create missing tables (development / single-node deployments)."""
    import feedback_aggregator.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
