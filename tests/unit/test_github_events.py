"""Unit tests for public-event pagination."""

from __future__ import annotations

import pytest

from gleaner.github.client import Err, Ok
from gleaner.github.errors import GitHubErrorInfo, GitHubErrorKind
from gleaner.github.events import EventSource, is_pagination_limit, parse_next_link
from gleaner.github.ratelimit import RateLimitTracker
from tests.helpers import github_events as ev
from tests.helpers.fake_github import FakeGitHub

_EVENTS_PATH = "/users/octocat/events/public"


class TestParseNextLink:
    """Tests for ``Link`` header parsing."""

    def test_finds_next_among_relations(self) -> None:
        """The ``rel="next"`` target is returned."""
        header = (
            '<https://api.github.com/user/1/events?page=1>; rel="prev", '
            '<https://api.github.com/user/1/events?page=3>; rel="next", '
            '<https://api.github.com/user/1/events?page=10>; rel="last"'
        )
        assert parse_next_link(header) == "https://api.github.com/user/1/events?page=3"

    @pytest.mark.parametrize(
        "header",
        [None, "", '<https://api.github.com/user/1/events?page=1>; rel="prev"'],
    )
    def test_missing_next_is_none(self, header: str | None) -> None:
        """Headers without a next relation end pagination."""
        assert parse_next_link(header) is None


class TestPaginationLimit:
    """Tests for the deep-pagination sentinel."""

    def test_matches_validation_with_message(self) -> None:
        """Only the 422 with the known message counts."""
        limited = GitHubErrorInfo(
            kind=GitHubErrorKind.VALIDATION,
            status=422,
            message="In order to keep the API fast for everyone, "
            "pagination is limited for this resource.",
        )
        other = GitHubErrorInfo(
            kind=GitHubErrorKind.VALIDATION, status=422, message="Validation Failed"
        )
        assert is_pagination_limit(limited)
        assert not is_pagination_limit(other)


class TestEventSource:
    """Tests for page fetching and iteration."""

    @pytest.mark.asyncio
    async def test_fetch_page_decodes_events_and_next_url(self) -> None:
        """A page yields decoded events and the next URL."""
        fake = FakeGitHub()
        fake.events_page("octocat", 1, [ev.issue_opened(1, "Fix bug")], has_next=True)
        source = EventSource(fake.client())

        result = await source.fetch_page(
            source.first_page_url("octocat", per_page=100)
        )

        assert isinstance(result, Ok), "expected a page"
        assert [event.type for event in result.data.events] == ["IssuesEvent"]
        assert result.data.next_url is not None
        assert result.data.next_url.endswith("page=2")

    @pytest.mark.asyncio
    async def test_pagination_limit_is_a_clean_end(self) -> None:
        """The 422 pagination limit becomes an empty, final page."""
        fake = FakeGitHub()
        fake.json(
            _EVENTS_PATH,
            {"message": "pagination is limited for this resource"},
            status=422,
        )
        source = EventSource(fake.client())

        result = await source.fetch_page(
            source.first_page_url("octocat", per_page=100)
        )

        assert isinstance(result, Ok), "expected the limit to be absorbed"
        assert result.data.events == []
        assert result.data.next_url is None

    @pytest.mark.asyncio
    async def test_iter_pages_respects_page_budget(self) -> None:
        """Iteration stops at ``max_pages`` even when more pages exist."""
        fake = FakeGitHub()
        for page in (1, 2, 3):
            fake.events_page(
                "octocat", page, [ev.issue_opened(page, f"Issue {page}")], has_next=True
            )
        source = EventSource(fake.client())

        pages = [
            result
            async for result in source.iter_pages("octocat", per_page=100, max_pages=2)
        ]

        assert len(pages) == 2
        assert fake.count(_EVENTS_PATH) == 2

    @pytest.mark.asyncio
    async def test_iter_pages_stops_after_failure(self) -> None:
        """A failed page is yielded once and ends iteration."""
        fake = FakeGitHub()
        fake.json(_EVENTS_PATH, {"message": "Not Found"}, status=404)
        source = EventSource(fake.client())

        pages = [
            result
            async for result in source.iter_pages("octocat", per_page=100, max_pages=5)
        ]

        assert len(pages) == 1
        assert isinstance(pages[0], Err)

    @pytest.mark.asyncio
    async def test_iter_pages_stops_on_empty_page(self) -> None:
        """An empty page ends iteration despite a next link."""
        fake = FakeGitHub()
        fake.events_page("octocat", 1, [], has_next=True)
        source = EventSource(fake.client())

        pages = [
            result
            async for result in source.iter_pages("octocat", per_page=100, max_pages=5)
        ]

        assert len(pages) == 1
        assert fake.count(_EVENTS_PATH) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_headers_are_tracked(self) -> None:
        """Headers from each page update the tracker."""
        fake = FakeGitHub()
        fake.json(
            f"{_EVENTS_PATH}?page=1",
            [],
            headers={"X-RateLimit-Remaining": "41", "X-RateLimit-Reset": "1700000000"},
        )
        tracker = RateLimitTracker()
        source = EventSource(fake.client(), rate_limit=tracker)

        await source.fetch_page(source.first_page_url("octocat", per_page=100))

        snapshot = tracker.snapshot()
        assert snapshot is not None
        assert snapshot.remaining == 41
        assert snapshot.reset == 1700000000
