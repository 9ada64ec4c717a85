"""Paginated access to a user's public GitHub events."""

from __future__ import annotations

import dataclasses
import re
import typing as typ

import msgspec

from .client import Err, GitHubResponseMeta, GitHubResult, Ok, api_url
from .errors import GitHubErrorInfo, GitHubErrorKind
from .models import RawEvent

if typ.TYPE_CHECKING:
    from .client import UpstreamClient
    from .ratelimit import RateLimitTracker

_HTTP_UNPROCESSABLE = 422
_PAGINATION_LIMITED = "pagination is limited for this resource"
_LINK_TARGET = re.compile(r"^<(?P<url>[^>]+)>$")

_EVENT_LIST = list[RawEvent]


@dataclasses.dataclass(frozen=True, slots=True)
class EventsPage:
    """One decoded page of events and the URL of the next page, if any."""

    events: list[RawEvent]
    next_url: str | None = None


def parse_next_link(link_header: str | None) -> str | None:
    """Return the ``rel="next"`` target of a ``Link`` header.

    Example header::

        <https://api.github.com/user/1/events?page=2>; rel="next", <...>; rel="last"
    """
    if not link_header:
        return None
    for part in link_header.split(","):
        target, *params = (segment.strip() for segment in part.strip().split(";"))
        rels = [p for p in params if p.startswith("rel=")]
        if not any('"next"' in rel or rel == "rel=next" for rel in rels):
            continue
        match = _LINK_TARGET.match(target)
        return match.group("url") if match else None
    return None


def is_pagination_limit(error: GitHubErrorInfo) -> bool:
    """Return True for GitHub's "pagination is limited" 422 response."""
    return (
        error.status == _HTTP_UNPROCESSABLE
        and error.message is not None
        and _PAGINATION_LIMITED in error.message
    )


def events_url(api_base: str, username: str, *, per_page: int) -> str:
    """Return the first-page URL of a user's public events."""
    return api_url(
        api_base, f"users/{username}/events/public", per_page=per_page, page=1
    )


class EventSource:
    """Fetch pages of public events, treating deep-pagination limits as the end."""

    def __init__(
        self,
        client: UpstreamClient,
        *,
        rate_limit: RateLimitTracker | None = None,
    ) -> None:
        """Bind the source to a client and an optional rate-limit tracker."""
        self._client = client
        self._rate_limit = rate_limit

    def first_page_url(self, username: str, *, per_page: int) -> str:
        """Return the first-page URL for ``username``."""
        return events_url(self._client.api_base, username, per_page=per_page)

    async def fetch_page(self, url: str) -> GitHubResult[EventsPage]:
        """Fetch and decode a single page of events."""
        result = await self._client.request(url)
        if isinstance(result, Err):
            if self._rate_limit is not None:
                self._rate_limit.observe_error(result.error)
            if is_pagination_limit(result.error):
                return Ok(EventsPage(events=[]), _meta_from_error(result.error))
            return result

        if self._rate_limit is not None:
            self._rate_limit.observe_meta(result.meta)

        response = result.data
        try:
            events = msgspec.json.decode(response.content, type=_EVENT_LIST)
        except msgspec.DecodeError as exc:
            return Err(
                GitHubErrorInfo(
                    kind=GitHubErrorKind.UNKNOWN,
                    status=response.status_code,
                    request_id=result.meta.request_id,
                    message=str(exc)[:200] or "Invalid JSON response",
                )
            )
        next_url = parse_next_link(response.headers.get("link"))
        return Ok(EventsPage(events=events, next_url=next_url), result.meta)

    async def iter_pages(
        self, username: str, *, per_page: int, max_pages: int
    ) -> typ.AsyncIterator[GitHubResult[EventsPage]]:
        """Yield page results lazily until exhaustion, failure, or ``max_pages``.

        A failed page is yielded once and ends iteration; the consumer decides
        whether that failure aborts its run.
        """
        next_url: str | None = self.first_page_url(username, per_page=per_page)
        fetched = 0
        while next_url is not None and fetched < max_pages:
            fetched += 1
            result = await self.fetch_page(next_url)
            yield result
            if isinstance(result, Err) or not result.data.events:
                return
            next_url = result.data.next_url


def _meta_from_error(error: GitHubErrorInfo) -> GitHubResponseMeta:
    return GitHubResponseMeta(
        request_id=error.request_id,
        rate_limit_reset=error.rate_limit_reset,
    )
