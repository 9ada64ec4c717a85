"""SQLAlchemy-backed :class:`~gleaner.cache.store.CacheStore`.

Lets several Gleaner instances share edge-cache entries, revalidation leases
and enrichment lookups through one database. Writes are last-write-wins
upserts; there is no cross-instance locking.
"""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import typing as typ

from sqlalchemy import DateTime, LargeBinary, String, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from gleaner.common.time import utcnow

from .errors import TimezoneAwareRequiredError
from .store import SWEEP_EVERY_WRITES

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


class Base(DeclarativeBase):
    """Base declarative class for cache models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column("expires_at")
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class CacheRecord(Base):
    """One key/value slot with an optional expiry."""

    __tablename__ = "cache_records"

    key: Mapped[str] = mapped_column(String(1024), primary_key=True)
    value: Mapped[bytes] = mapped_column(LargeBinary)
    expires_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )


async def init_cache_storage(engine: AsyncEngine) -> None:
    """Create the cache tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class SqlCacheStore:
    """:class:`~gleaner.cache.store.CacheStore` persisting to ``cache_records``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        sweep_every: int = SWEEP_EVERY_WRITES,
    ) -> None:
        """Bind the store to a session factory and an expiry clock.

        Every ``sweep_every`` writes also purge expired records.
        """
        self._session_factory = session_factory
        self._clock = clock
        self._sweep_every = max(1, sweep_every)
        self._writes = 0

    def _expired(self, record: CacheRecord) -> bool:
        return record.expires_at is not None and record.expires_at <= self._clock()

    async def get(self, key: str) -> bytes | None:
        """Return the stored value, or ``None`` when absent or expired."""
        async with self._session_factory() as session:
            record = await session.get(CacheRecord, key)
            if record is None:
                return None
            if self._expired(record):
                await session.delete(record)
                await session.commit()
                return None
            return record.value

    async def put(
        self, key: str, value: bytes, *, ttl_seconds: float | None = None
    ) -> None:
        """Insert or replace ``key``."""
        expires_at = (
            None
            if ttl_seconds is None
            else self._clock() + dt.timedelta(seconds=ttl_seconds)
        )
        try:
            await self._upsert(key, value, expires_at)
        except IntegrityError:
            # A concurrent writer inserted the key first; overwrite it.
            await self._upsert(key, value, expires_at)
        self._writes += 1
        if self._writes % self._sweep_every == 0:
            await self.purge_expired()

    async def _upsert(
        self, key: str, value: bytes, expires_at: dt.datetime | None
    ) -> None:
        async with self._session_factory() as session, session.begin():
            record = await session.get(CacheRecord, key)
            if record is None:
                session.add(CacheRecord(key=key, value=value, expires_at=expires_at))
                return
            record.value = value
            record.expires_at = expires_at

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        async with self._session_factory() as session, session.begin():
            await session.execute(delete(CacheRecord).where(CacheRecord.key == key))

    async def purge_expired(self) -> int:
        """Delete every expired record and return how many were removed."""
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                delete(CacheRecord).where(
                    CacheRecord.expires_at.is_not(None),
                    CacheRecord.expires_at <= self._clock(),
                )
            )
        return result.rowcount or 0
