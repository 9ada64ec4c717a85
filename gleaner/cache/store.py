"""Key/value store abstraction shared by the edge cache and the resolvers.

Values are opaque bytes with an optional time-to-live. Writes are
last-write-wins; there is no compare-and-swap, so callers needing coordination
(the revalidation lease) treat the store as advisory.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import time
import typing as typ

SWEEP_EVERY_WRITES = 256


@typ.runtime_checkable
class CacheStore(typ.Protocol):
    """Protocol for the shared cache store."""

    async def get(self, key: str) -> bytes | None:
        """Return the stored value, or ``None`` when absent or expired."""
        ...

    async def put(
        self, key: str, value: bytes, *, ttl_seconds: float | None = None
    ) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class _Slot:
    value: bytes
    expires_at: float | None


class InMemoryCacheStore:
    """Process-local :class:`CacheStore` backed by a dictionary.

    Expired slots are dropped on read and swept every ``sweep_every`` writes,
    so keys that are never read again do not accumulate.
    """

    def __init__(
        self,
        *,
        clock: cabc.Callable[[], float] = time.monotonic,
        sweep_every: int = SWEEP_EVERY_WRITES,
    ) -> None:
        """Create an empty store using ``clock`` for expiry."""
        self._slots: dict[str, _Slot] = {}
        self._clock = clock
        self._sweep_every = max(1, sweep_every)
        self._writes = 0

    def __len__(self) -> int:
        """Return the number of unexpired slots."""
        now = self._clock()
        return sum(1 for slot in self._slots.values() if not _expired(slot, now))

    async def get(self, key: str) -> bytes | None:
        """Return the stored value, or ``None`` when absent or expired."""
        slot = self._slots.get(key)
        if slot is None:
            return None
        if _expired(slot, self._clock()):
            del self._slots[key]
            return None
        return slot.value

    async def put(
        self, key: str, value: bytes, *, ttl_seconds: float | None = None
    ) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        expires_at = None if ttl_seconds is None else self._clock() + ttl_seconds
        self._slots[key] = _Slot(value=bytes(value), expires_at=expires_at)
        self._writes += 1
        if self._writes % self._sweep_every == 0:
            await self.purge_expired()

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        self._slots.pop(key, None)

    async def purge_expired(self) -> int:
        """Drop every expired slot and return how many were removed."""
        now = self._clock()
        expired = [key for key, slot in self._slots.items() if _expired(slot, now)]
        for key in expired:
            del self._slots[key]
        return len(expired)


def _expired(slot: _Slot, now: float) -> bool:
    return slot.expires_at is not None and now >= slot.expires_at
