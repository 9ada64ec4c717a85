"""Edge cache with stale-while-revalidate serving and stampede control.

Serving protocol for one ``(endpoint, username)`` key:

- fresh hit: serve the cached entry, no background work;
- stale or expired hit: serve the cached entry immediately and, unless a
  revalidation lease or the rate-limit side channel says otherwise, hand a
  refresh to the :class:`~gleaner.cache.scheduler.BackgroundScheduler`;
- miss: produce synchronously, store and serve.

The lease and side channel are plain store entries. They are advisory: two
instances racing on an absent lease may both refresh once, which only costs a
redundant upstream call since entries are replaced whole. Within one process
an in-flight set, checked and claimed before any store access, allows a single
refresh per key.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import enum
import typing as typ

import msgspec

from gleaner.common.time import utcnow
from gleaner.github.errors import (
    GitHubErrorInfo,
    GitHubErrorKind,
    GitHubRequestError,
)
from gleaner.github.ratelimit import RateLimitInfo  # noqa: TC001

from .keys import entry_key, lease_key, rate_limit_key
from .observability import CacheEventLogger
from .policy import DEFAULT_CACHE_POLICY, CachePolicy, Freshness

if typ.TYPE_CHECKING:
    from .scheduler import BackgroundScheduler
    from .store import CacheStore

ENTRY_TTL_SECONDS = 24 * 60 * 60.0
LEASE_TTL_SECONDS = 15.0


class CacheState(enum.StrEnum):
    """Value of the ``X-Cache`` diagnostic header."""

    HIT = "HIT"
    STALE = "STALE"
    MISS = "MISS"


class CacheEntry(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """A cached response body and the instant it was generated."""

    body: bytes
    generated_at: dt.datetime
    rate_limit: RateLimitInfo | None = None


class _Lease(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    acquired_at: dt.datetime


class _RateLimitMarker(msgspec.Struct, kw_only=True, frozen=True):
    reset: int


@dataclasses.dataclass(frozen=True, slots=True)
class CacheOutcome:
    """What :meth:`EdgeCache.serve` served and what it set in motion.

    Attributes
    ----------
    entry
        The entry to serve.
    state
        ``HIT`` for fresh entries, ``STALE`` for stale or expired ones and
        ``MISS`` when the entry was produced synchronously.
    refresh_scheduled
        True when a background refresh was handed to the scheduler.
    rate_limit_reset
        Reset instant from the side channel when a refresh was suppressed
        because the upstream is rate limited.

    """

    entry: CacheEntry
    state: CacheState
    refresh_scheduled: bool = False
    rate_limit_reset: int | None = None


type Producer = cabc.Callable[[], cabc.Awaitable[CacheEntry]]


class EdgeCache:
    """Serve produced responses through a shared :class:`CacheStore`."""

    def __init__(  # noqa: PLR0913
        self,
        store: CacheStore,
        scheduler: BackgroundScheduler,
        *,
        policy: CachePolicy = DEFAULT_CACHE_POLICY,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        entry_ttl_seconds: float = ENTRY_TTL_SECONDS,
        lease_ttl_seconds: float = LEASE_TTL_SECONDS,
        event_logger: CacheEventLogger | None = None,
    ) -> None:
        """Create an edge cache.

        Parameters
        ----------
        store
            Shared key/value store for entries, leases and the side channel.
        scheduler
            Owner of background refresh tasks.
        policy
            Freshness windows.
        clock
            Source of "now" for entry ages, leases and the side channel.
        entry_ttl_seconds
            How long entries stay in the store; well beyond the stale window
            so expired entries remain servable while the upstream is down.
        lease_ttl_seconds
            Lifetime of a revalidation lease.
        event_logger
            Structured cache logger.

        """
        self._store = store
        self._scheduler = scheduler
        self._policy = policy
        self._clock = clock
        self._entry_ttl_seconds = entry_ttl_seconds
        self._lease_ttl_seconds = lease_ttl_seconds
        self._events = event_logger or CacheEventLogger()
        self._in_flight: set[str] = set()

    @property
    def policy(self) -> CachePolicy:
        """Return the freshness policy."""
        return self._policy

    def age_seconds(self, entry: CacheEntry) -> float:
        """Return seconds elapsed since ``entry`` was generated."""
        return (self._clock() - entry.generated_at).total_seconds()

    def freshness(self, entry: CacheEntry) -> Freshness:
        """Classify ``entry`` against the policy."""
        return self._policy.classify(self.age_seconds(entry))

    async def get(self, endpoint: str, username: str) -> CacheEntry | None:
        """Return the cached entry, ignoring values that fail to decode."""
        key = entry_key(endpoint, username)
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return msgspec.json.decode(raw, type=CacheEntry)
        except msgspec.DecodeError:
            self._events.log_corrupt_entry(key=key)
            return None

    async def put(self, endpoint: str, username: str, entry: CacheEntry) -> None:
        """Store ``entry``, replacing any previous one."""
        await self._store.put(
            entry_key(endpoint, username),
            msgspec.json.encode(entry),
            ttl_seconds=self._entry_ttl_seconds,
        )

    async def serve(
        self, endpoint: str, username: str, produce: Producer
    ) -> CacheOutcome:
        """Serve ``(endpoint, username)`` following the stale-while-revalidate rules.

        Raises
        ------
        GitHubRequestError
            On a miss, when ``produce`` fails or the upstream is known to be
            rate limited.

        """
        key = entry_key(endpoint, username)
        entry = await self.get(endpoint, username)
        rate_limit_reset = await self.active_rate_limit_reset(endpoint, username)

        if entry is None:
            if rate_limit_reset is not None:
                self._events.log_refresh_skipped(key=key, reason="rate_limited")
                raise GitHubRequestError(
                    GitHubErrorInfo(
                        kind=GitHubErrorKind.RATE_LIMIT,
                        rate_limit_reset=rate_limit_reset,
                        message="GitHub rate limit exhausted; retry after reset",
                    )
                )
            entry = await self._produce(endpoint, username, produce)
            self._events.log_served(key=key, state=CacheState.MISS)
            return CacheOutcome(entry=entry, state=CacheState.MISS)

        age = self.age_seconds(entry)
        if self._policy.classify(age) is Freshness.FRESH:
            self._events.log_served(key=key, state=CacheState.HIT, age_seconds=age)
            return CacheOutcome(entry=entry, state=CacheState.HIT)

        self._events.log_served(key=key, state=CacheState.STALE, age_seconds=age)
        if rate_limit_reset is not None:
            self._events.log_refresh_skipped(key=key, reason="rate_limited")
            return CacheOutcome(
                entry=entry,
                state=CacheState.STALE,
                rate_limit_reset=rate_limit_reset,
            )

        scheduled = await self._trigger_refresh(endpoint, username, produce)
        return CacheOutcome(
            entry=entry, state=CacheState.STALE, refresh_scheduled=scheduled
        )

    async def active_rate_limit_reset(self, endpoint: str, username: str) -> int | None:
        """Return the recorded rate-limit reset if it is still in the future."""
        raw = await self._store.get(rate_limit_key(endpoint, username))
        if raw is None:
            return None
        try:
            marker = msgspec.json.decode(raw, type=_RateLimitMarker)
        except msgspec.DecodeError:
            return None
        if marker.reset <= self._clock().timestamp():
            return None
        return marker.reset

    async def record_rate_limit(self, endpoint: str, username: str, reset: int) -> None:
        """Record an upstream rate-limit reset for ``(endpoint, username)``."""
        remaining = reset - self._clock().timestamp()
        if remaining <= 0:
            return
        key = rate_limit_key(endpoint, username)
        await self._store.put(
            key,
            msgspec.json.encode(_RateLimitMarker(reset=reset)),
            ttl_seconds=remaining,
        )
        self._events.log_rate_limit_recorded(key=key, reset=reset)

    async def _produce(
        self, endpoint: str, username: str, produce: Producer
    ) -> CacheEntry:
        try:
            entry = await produce()
        except GitHubRequestError as exc:
            await self._note_failure(endpoint, username, exc.info)
            raise
        await self.put(endpoint, username, entry)
        return entry

    async def _note_failure(
        self, endpoint: str, username: str, error: GitHubErrorInfo
    ) -> None:
        if error.kind is GitHubErrorKind.RATE_LIMIT and error.rate_limit_reset:
            await self.record_rate_limit(endpoint, username, error.rate_limit_reset)

    async def _lease_held(self, key: str) -> bool:
        raw = await self._store.get(key)
        if raw is None:
            return False
        try:
            lease = msgspec.json.decode(raw, type=_Lease)
        except msgspec.DecodeError:
            return False
        held_for = (self._clock() - lease.acquired_at).total_seconds()
        return held_for < self._lease_ttl_seconds

    async def _trigger_refresh(
        self, endpoint: str, username: str, produce: Producer
    ) -> bool:
        key = entry_key(endpoint, username)
        if key in self._in_flight:
            self._events.log_refresh_skipped(key=key, reason="in_flight")
            return False
        self._in_flight.add(key)

        scheduled = False
        try:
            lock = lease_key(endpoint, username)
            if await self._lease_held(lock):
                self._events.log_refresh_skipped(key=key, reason="lease_held")
                return False

            await self._store.put(
                lock,
                msgspec.json.encode(_Lease(acquired_at=self._clock())),
                ttl_seconds=self._lease_ttl_seconds,
            )
            scheduled = self._scheduler.submit(
                f"refresh {key}", self._refresh(endpoint, username, produce)
            )
        finally:
            if not scheduled:
                self._in_flight.discard(key)
        if scheduled:
            self._events.log_refresh_scheduled(key=key)
        return scheduled

    async def _refresh(self, endpoint: str, username: str, produce: Producer) -> None:
        key = entry_key(endpoint, username)
        try:
            await self._produce(endpoint, username, produce)
        except GitHubRequestError as exc:
            self._events.log_refresh_failed(key=key, error=exc.info)
            return
        finally:
            self._in_flight.discard(key)
        self._events.log_refresh_completed(key=key)
