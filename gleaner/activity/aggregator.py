"""Aggregate a user's public events into a normalized activity feed.

Each run walks the public-events pages in order. For every page it resolves
fork status for the page's repositories, drops fork events, resolves trimmed
pull-request payloads, normalizes the remainder and deduplicates by permalink.
Pages are processed sequentially; lookups within a page fan out under one
:class:`~gleaner.github.enrichment.ConcurrencyLimiter`.

Upstream failures during enrichment are absorbed and mark the response
partial. A page failure aborts the run only when nothing was collected yet,
in which case :class:`~gleaner.github.errors.GitHubRequestError` is raised.
"""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import dataclasses
import typing as typ

from gleaner.common.time import utcnow
from gleaner.github.client import Err, Ok
from gleaner.github.enrichment import (
    DEFAULT_CONCURRENCY,
    ConcurrencyLimiter,
    ForkResolver,
    PullRequestResolver,
    repo_api_url,
)
from gleaner.github.errors import GitHubRequestError
from gleaner.github.events import EventSource
from gleaner.github.ratelimit import RateLimitTracker

from .models import ActivityResponse, ActivityResult
from .normalize import needs_pull_request_fetch, normalize, normalize_preview
from .observability import AggregationEventLogger

if typ.TYPE_CHECKING:
    import datetime as dt

    from gleaner.cache.store import CacheStore
    from gleaner.github.client import UpstreamClient
    from gleaner.github.errors import GitHubErrorInfo
    from gleaner.github.models import PullRequestDetail, RawEvent

    from .models import ActivityItem

DEFAULT_LIMIT = 30
MAX_LIMIT = 100
DEFAULT_PER_PAGE = 100
MAX_PER_PAGE = 100
DEFAULT_MAX_PAGES = 5
MAX_PAGES = 10


def clamp(value: int | None, *, default: int, upper: int) -> int:
    """Clamp ``value`` into ``1..upper``, substituting ``default`` for ``None``."""
    if value is None:
        return default
    return max(1, min(upper, value))


@dataclasses.dataclass(frozen=True, slots=True)
class AggregatorConfig:
    """Budgets bounding one aggregation run.

    Out-of-range values are clamped rather than rejected: ``limit`` and
    ``per_page`` to ``1..100``, ``max_pages`` to ``1..10``.
    """

    limit: int = DEFAULT_LIMIT
    per_page: int = DEFAULT_PER_PAGE
    max_pages: int = DEFAULT_MAX_PAGES
    concurrency: int = DEFAULT_CONCURRENCY

    def __post_init__(self) -> None:
        """Clamp budgets into their supported ranges."""
        object.__setattr__(
            self, "limit", clamp(self.limit, default=DEFAULT_LIMIT, upper=MAX_LIMIT)
        )
        object.__setattr__(
            self,
            "per_page",
            clamp(self.per_page, default=DEFAULT_PER_PAGE, upper=MAX_PER_PAGE),
        )
        object.__setattr__(
            self,
            "max_pages",
            clamp(self.max_pages, default=DEFAULT_MAX_PAGES, upper=MAX_PAGES),
        )


class PartialTracker:
    """Remember the first absorbed failure of a run."""

    def __init__(self) -> None:
        """Start with no recorded failure."""
        self.first_error: GitHubErrorInfo | None = None

    @property
    def partial(self) -> bool:
        """Return True once any failure has been recorded."""
        return self.first_error is not None

    def record(self, error: GitHubErrorInfo) -> bool:
        """Record ``error``; return True when it became the run's first error."""
        if self.first_error is not None:
            return False
        self.first_error = error
        return True


@dataclasses.dataclass(slots=True)
class _RunState:
    """Mutable bookkeeping owned by one run."""

    username: str
    limit: int
    rate_limit: RateLimitTracker = dataclasses.field(default_factory=RateLimitTracker)
    partial: PartialTracker = dataclasses.field(default_factory=PartialTracker)
    items: list[ActivityItem] = dataclasses.field(default_factory=list)
    seen_urls: set[str] = dataclasses.field(default_factory=set)
    pages: int = 0

    @property
    def full(self) -> bool:
        return len(self.items) >= self.limit

    def collect(self, items: cabc.Iterable[ActivityItem | None]) -> None:
        """Append items whose permalink has not been seen, first occurrence wins."""
        for item in items:
            if item is None or item.url in self.seen_urls:
                continue
            self.seen_urls.add(item.url)
            self.items.append(item)


class ActivityAggregator:
    """Build :class:`ActivityResult` values for a GitHub user."""

    def __init__(
        self,
        client: UpstreamClient,
        *,
        config: AggregatorConfig | None = None,
        shared_cache: CacheStore | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        event_logger: AggregationEventLogger | None = None,
    ) -> None:
        """Create an aggregator around ``client``.

        Parameters
        ----------
        client
            Upstream client used for every GitHub call.
        config
            Run budgets; defaults to :class:`AggregatorConfig`.
        shared_cache
            Optional store amortizing fork and pull-request lookups across
            runs.
        clock
            Source of ``generatedAt`` and run durations.
        event_logger
            Structured run logger.

        """
        self._client = client
        self._config = config or AggregatorConfig()
        self._shared_cache = shared_cache
        self._clock = clock
        self._events = event_logger or AggregationEventLogger()

    @property
    def config(self) -> AggregatorConfig:
        """Return the run budgets."""
        return self._config

    async def get_recent_activity(
        self, username: str, limit: int | None = None
    ) -> ActivityResult:
        """Return the enriched, fork-filtered feed for ``username``.

        Raises
        ------
        GitHubRequestError
            If a page fetch fails before any item was collected.

        """
        return await self._run(username, limit=limit, preview=False)

    async def get_recent_activity_preview(
        self, username: str, limit: int | None = None
    ) -> ActivityResult:
        """Return a single-page feed built from event payloads alone.

        No fork or pull-request lookups are made, so missing pull-request
        titles are synthesized instead of fetched.
        """
        return await self._run(username, limit=limit, preview=True)

    async def _run(
        self, username: str, *, limit: int | None, preview: bool
    ) -> ActivityResult:
        started = self._clock()
        state = _RunState(
            username=username,
            limit=clamp(limit, default=self._config.limit, upper=MAX_LIMIT),
        )
        self._events.log_run_started(
            username=username, limit=state.limit, preview=preview
        )

        limiter = ConcurrencyLimiter(self._config.concurrency)
        forks = ForkResolver(
            self._client,
            shared_cache=self._shared_cache,
            limiter=limiter,
            rate_limit=state.rate_limit,
        )
        pulls = PullRequestResolver(
            self._client,
            shared_cache=self._shared_cache,
            limiter=limiter,
            rate_limit=state.rate_limit,
        )
        source = EventSource(self._client, rate_limit=state.rate_limit)
        pages = source.iter_pages(
            username,
            per_page=self._config.per_page,
            max_pages=1 if preview else self._config.max_pages,
        )

        async with contextlib.aclosing(pages) as page_results:
            async for result in page_results:
                state.pages += 1
                if isinstance(result, Err):
                    if not state.items:
                        self._events.log_run_failed(
                            username=username,
                            error=result.error,
                            duration=self._clock() - started,
                        )
                        raise GitHubRequestError(result.error)
                    self._record_partial(state, "events", result.error)
                    break

                events = result.data.events
                if preview:
                    state.collect(normalize_preview(event) for event in events)
                else:
                    state.collect(
                        await self._normalize_page(state, events, forks, pulls)
                    )
                if state.full:
                    break

        ordered = sorted(state.items, key=lambda item: item.created_at, reverse=True)
        generated_at = self._clock()
        response = ActivityResponse(
            username=username,
            generated_at=generated_at,
            items=tuple(ordered[: state.limit]),
            partial=state.partial.partial,
            error_info=state.partial.first_error,
        )
        self._events.log_run_completed(
            username=username,
            items=len(response.items),
            pages=state.pages,
            partial=response.partial,
            duration=generated_at - started,
        )
        return ActivityResult(data=response, rate_limit=state.rate_limit.snapshot())

    async def _normalize_page(
        self,
        state: _RunState,
        events: list[RawEvent],
        forks: ForkResolver,
        pulls: PullRequestResolver,
    ) -> list[ActivityItem | None]:
        api_base = self._client.api_base
        repo_urls = [
            repo_api_url(api_base, event.repo.name, event.repo.url) for event in events
        ]
        for fork_result in (await forks.resolve_all(repo_urls)).values():
            if isinstance(fork_result, Err):
                self._record_partial(state, "fork", fork_result.error)

        kept = [
            event
            for event, repo_url in zip(events, repo_urls, strict=True)
            if not forks.is_fork(repo_url)
        ]
        pull_urls = [needs_pull_request_fetch(event, api_base) for event in kept]
        details = await pulls.resolve_all(url for url in pull_urls if url is not None)

        items: list[ActivityItem | None] = []
        for event, pull_url in zip(kept, pull_urls, strict=True):
            detail: PullRequestDetail | None = None
            if pull_url is not None:
                match details[pull_url]:
                    case Ok(data=resolved):
                        detail = resolved
                    case Err(error=error):
                        self._record_partial(state, "pull_request", error)
            items.append(normalize(event, detail))
        return items

    def _record_partial(
        self, state: _RunState, stage: str, error: GitHubErrorInfo
    ) -> None:
        if state.partial.record(error):
            self._events.log_partial_cause(
                username=state.username, stage=stage, error=error
            )
