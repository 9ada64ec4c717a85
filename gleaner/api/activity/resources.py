"""Edge-cached activity and profile resources.

Each resource serves one endpoint for the configured GitHub user through the
:class:`~gleaner.cache.edge.EdgeCache`; only the producer differs.

Usage
-----
::

    deps = CachedResourceDependencies(
        username="octocat", client=client, aggregator=aggregator, edge_cache=cache
    )
    app.add_route(ActivityResource.endpoint, ActivityResource(deps))

"""

from __future__ import annotations

import abc
import collections.abc as cabc
import dataclasses as dc
import typing as typ

import falcon
import msgspec

from gleaner.activity.profile import fetch_profile
from gleaner.cache.edge import CacheEntry
from gleaner.common.time import isoformat_z, utcnow
from gleaner.github.ratelimit import RateLimitTracker

if typ.TYPE_CHECKING:
    import datetime as dt

    from falcon.asgi import Request, Response

    from gleaner.activity.aggregator import ActivityAggregator
    from gleaner.activity.models import ActivityResult
    from gleaner.cache.edge import CacheOutcome, EdgeCache
    from gleaner.github.client import UpstreamClient

__all__ = [
    "ActivityPreviewResource",
    "ActivityResource",
    "CachedResourceDependencies",
    "ProfileResource",
    "apply_cache_headers",
    "entry_from_result",
]


@dc.dataclass(frozen=True, slots=True)
class CachedResourceDependencies:
    """Collaborators shared by the cached resources.

    Attributes
    ----------
    username
        GitHub login the service is configured for.
    client
        Upstream client used for profile lookups.
    aggregator
        Builds activity feeds.
    edge_cache
        Serves and refreshes cached responses.
    clock
        Source of ``generatedAt`` for profile responses.

    """

    username: str
    client: UpstreamClient
    aggregator: ActivityAggregator
    edge_cache: EdgeCache
    clock: cabc.Callable[[], dt.datetime] = utcnow


def entry_from_result(result: ActivityResult) -> CacheEntry:
    """Serialize an aggregation result into a cache entry."""
    return CacheEntry(
        body=msgspec.json.encode(result.data),
        generated_at=result.data.generated_at,
        rate_limit=result.rate_limit,
    )


def apply_cache_headers(
    resp: Response, outcome: CacheOutcome, *, cache_control: str
) -> None:
    """Set the cache diagnostic headers for ``outcome`` on ``resp``."""
    entry = outcome.entry
    resp.set_header("Cache-Control", cache_control)
    resp.set_header("X-Generated-At", isoformat_z(entry.generated_at))
    resp.set_header("X-Cache", str(outcome.state))

    remaining = entry.rate_limit.remaining if entry.rate_limit else None
    reset = outcome.rate_limit_reset
    if reset is None and entry.rate_limit is not None:
        reset = entry.rate_limit.reset
    if remaining is not None:
        resp.set_header("X-RateLimit-Remaining", str(remaining))
    if reset is not None:
        resp.set_header("X-RateLimit-Reset", str(reset))


class _CachedResource(abc.ABC):
    """Serve ``endpoint`` for the configured user through the edge cache."""

    endpoint: typ.ClassVar[str]

    def __init__(self, dependencies: CachedResourceDependencies) -> None:
        self._deps = dependencies

    @abc.abstractmethod
    async def produce(self) -> CacheEntry:
        """Build a fresh entry for the endpoint."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET requests for the endpoint."""
        cache = self._deps.edge_cache
        outcome = await cache.serve(self.endpoint, self._deps.username, self.produce)
        apply_cache_headers(resp, outcome, cache_control=cache.policy.cache_control)
        resp.content_type = falcon.MEDIA_JSON
        resp.data = outcome.entry.body
        resp.status = falcon.HTTP_200


class ActivityResource(_CachedResource):
    """``GET /api/activity.json``: the full, enriched feed."""

    endpoint = "/api/activity.json"

    async def produce(self) -> CacheEntry:
        """Run a full aggregation for the configured user."""
        result = await self._deps.aggregator.get_recent_activity(self._deps.username)
        return entry_from_result(result)


class ActivityPreviewResource(_CachedResource):
    """``GET /api/activity.preview.json``: single page, payload-only feed."""

    endpoint = "/api/activity.preview.json"

    async def produce(self) -> CacheEntry:
        """Run a preview aggregation for the configured user."""
        result = await self._deps.aggregator.get_recent_activity_preview(
            self._deps.username
        )
        return entry_from_result(result)


class ProfileResource(_CachedResource):
    """``GET /api/profile.json``: login, permalink and avatar."""

    endpoint = "/api/profile.json"

    async def produce(self) -> CacheEntry:
        """Look up the configured user's profile."""
        tracker = RateLimitTracker()
        profile = await fetch_profile(
            self._deps.client, self._deps.username, rate_limit=tracker
        )
        return CacheEntry(
            body=msgspec.json.encode(profile),
            generated_at=self._deps.clock(),
            rate_limit=tracker.snapshot(),
        )
