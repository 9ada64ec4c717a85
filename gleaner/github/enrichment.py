"""Memoized, concurrency-capped lookups that enrich public events.

Two resolvers share one shape: a per-run memo keyed by upstream URL, an
optional shared cache with a TTL that amortizes lookups across runs, and a
:class:`ConcurrencyLimiter` that bounds fan-out against the rate limit.

A resolver instance belongs to exactly one aggregation run; its memo is
discarded with it.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import typing as typ

import msgspec

from .client import Err, GitHubResponseMeta, GitHubResult, Ok, api_url
from .models import PullRequestDetail, RepoSummary

if typ.TYPE_CHECKING:
    from gleaner.cache.store import CacheStore

    from .client import UpstreamClient
    from .ratelimit import RateLimitTracker

DEFAULT_CONCURRENCY = 4
REPO_CACHE_TTL_SECONDS = 300.0
PULL_REQUEST_CACHE_TTL_SECONDS = 180.0


class ConcurrencyLimiter:
    """Cap concurrent calls, admitting queued callers in arrival order.

    Waiters beyond the limit queue FIFO and are released one-in-one-out as
    slots free up. A non-positive limit disables the cap.
    """

    def __init__(self, limit: int = DEFAULT_CONCURRENCY) -> None:
        """Create a limiter allowing ``limit`` concurrent calls."""
        self._limit = limit
        self._semaphore = asyncio.Semaphore(limit) if limit > 0 else None
        self._in_flight = 0

    @property
    def limit(self) -> int:
        """Return the configured concurrency limit."""
        return self._limit

    @property
    def in_flight(self) -> int:
        """Return the number of calls currently admitted."""
        return self._in_flight

    async def run[T](self, call: cabc.Callable[[], cabc.Awaitable[T]]) -> T:
        """Await ``call()`` once a slot is available."""
        if self._semaphore is None:
            return await call()
        async with self._semaphore:
            self._in_flight += 1
            try:
                return await call()
            finally:
                self._in_flight -= 1


class _MemoizedResolver[T]:
    """Shared machinery for URL-keyed, memoized upstream lookups."""

    _cache_namespace: typ.ClassVar[str]

    def __init__(  # noqa: PLR0913
        self,
        client: UpstreamClient,
        *,
        into: type[T],
        ttl_seconds: float,
        shared_cache: CacheStore | None = None,
        limiter: ConcurrencyLimiter | None = None,
        rate_limit: RateLimitTracker | None = None,
    ) -> None:
        self._client = client
        self._into = into
        self._ttl_seconds = ttl_seconds
        self._shared_cache = shared_cache
        self._limiter = limiter or ConcurrencyLimiter()
        self._rate_limit = rate_limit
        self._memo: dict[str, GitHubResult[T]] = {}

    def memoized(self, url: str) -> GitHubResult[T] | None:
        """Return the result already resolved for ``url`` in this run."""
        return self._memo.get(url)

    async def resolve(self, url: str) -> GitHubResult[T]:
        """Resolve ``url`` via memo, then shared cache, then upstream."""
        known = self._memo.get(url)
        if known is not None:
            return known

        cached = await self._read_shared(url)
        if cached is not None:
            result: GitHubResult[T] = Ok(cached, GitHubResponseMeta())
            self._memo[url] = result
            return result

        result = await self._limiter.run(
            lambda: self._client.request_json(url, into=self._into)
        )
        self._memo[url] = result
        if isinstance(result, Err):
            if self._rate_limit is not None:
                self._rate_limit.observe_error(result.error)
            return result

        if self._rate_limit is not None:
            self._rate_limit.observe_meta(result.meta)
        await self._write_shared(url, result.data)
        return result

    async def resolve_all(
        self, urls: cabc.Iterable[str]
    ) -> dict[str, GitHubResult[T]]:
        """Resolve distinct ``urls`` concurrently, preserving first-seen order."""
        distinct = list(dict.fromkeys(urls))
        results = await asyncio.gather(*(self.resolve(url) for url in distinct))
        return dict(zip(distinct, results, strict=True))

    def _cache_key(self, url: str) -> str:
        return f"github:{self._cache_namespace}:{url}"

    async def _read_shared(self, url: str) -> T | None:
        if self._shared_cache is None:
            return None
        raw = await self._shared_cache.get(self._cache_key(url))
        if raw is None:
            return None
        try:
            return msgspec.json.decode(raw, type=self._into)
        except msgspec.DecodeError:
            return None

    async def _write_shared(self, url: str, value: T) -> None:
        if self._shared_cache is None:
            return
        await self._shared_cache.put(
            self._cache_key(url),
            msgspec.json.encode(value),
            ttl_seconds=self._ttl_seconds,
        )


class ForkResolver(_MemoizedResolver[RepoSummary]):
    """Resolve whether a repository is a fork.

    Callers apply the fail-open policy: a failed lookup means "not a fork".
    """

    _cache_namespace = "repo"

    def __init__(
        self,
        client: UpstreamClient,
        *,
        shared_cache: CacheStore | None = None,
        limiter: ConcurrencyLimiter | None = None,
        rate_limit: RateLimitTracker | None = None,
        ttl_seconds: float = REPO_CACHE_TTL_SECONDS,
    ) -> None:
        """Create a fork resolver for one aggregation run."""
        super().__init__(
            client,
            into=RepoSummary,
            ttl_seconds=ttl_seconds,
            shared_cache=shared_cache,
            limiter=limiter,
            rate_limit=rate_limit,
        )

    def is_fork(self, url: str) -> bool:
        """Return the memoized fork flag, failing open for unknown or failed URLs."""
        result = self._memo.get(url)
        return isinstance(result, Ok) and result.data.fork


class PullRequestResolver(_MemoizedResolver[PullRequestDetail]):
    """Fetch full pull-request detail when an event payload was trimmed."""

    _cache_namespace = "pull"

    def __init__(
        self,
        client: UpstreamClient,
        *,
        shared_cache: CacheStore | None = None,
        limiter: ConcurrencyLimiter | None = None,
        rate_limit: RateLimitTracker | None = None,
        ttl_seconds: float = PULL_REQUEST_CACHE_TTL_SECONDS,
    ) -> None:
        """Create a pull-request resolver for one aggregation run."""
        super().__init__(
            client,
            into=PullRequestDetail,
            ttl_seconds=ttl_seconds,
            shared_cache=shared_cache,
            limiter=limiter,
            rate_limit=rate_limit,
        )


def repo_api_url(api_base: str, repo_name: str, reported_url: str = "") -> str:
    """Return the repository API URL, preferring the one GitHub reported."""
    return reported_url or api_url(api_base, f"repos/{repo_name}")


def pull_request_api_url(api_base: str, repo_name: str, number: int) -> str:
    """Return the API URL of pull request ``number`` in ``repo_name``."""
    return api_url(api_base, f"repos/{repo_name}/pulls/{number}")
