"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from gleaner.cache.sql_store import init_cache_storage

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest_asyncio.fixture
async def cache_engine(tmp_path: Path) -> typ.AsyncIterator[AsyncEngine]:
    """Yield a SQLite engine with the cache tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gleaner.db'}")
    try:
        await init_cache_storage(engine)
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    cache_engine: AsyncEngine,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a session factory bound to ``cache_engine``."""
    yield async_sessionmaker(cache_engine, expire_on_commit=False)
