"""Database base configuration: engine, session and metadata."""
from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from reqflow.core.settings import get_settings


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_SessionFactory: async_sessionmaker[AsyncSession] | None = None


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Make every SQLite transaction take the write lock up front.

    A deferred transaction that reads before it writes can deadlock against
    another writer, so version assignment would fail under concurrency.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, _: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def get_engine() -> AsyncEngine:
    global _engine, _SessionFactory
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(settings.database_url, echo=settings.sql_echo, future=True)
        if _engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(_engine)
        _SessionFactory = async_sessionmaker(bind=_engine, expire_on_commit=False, autoflush=False)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _SessionFactory is None:
        get_engine()
    assert _SessionFactory is not None
    return _SessionFactory


async def get_session() -> AsyncGenerator[AsyncSession, None]:  # FastAPI dependency style
    factory = get_session_factory()
    async with factory() as session:
        yield session


async def init_models(drop: bool = False) -> None:
    """Create database tables (optionally dropping first)."""
    # Import models so they register on the metadata
    from reqflow.db import models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine so settings can change."""
    global _engine, _SessionFactory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _SessionFactory = None
