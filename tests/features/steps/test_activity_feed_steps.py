"""Behavioural tests for aggregating the public activity feed."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from gleaner.activity.aggregator import ActivityAggregator
from gleaner.activity.models import ActivityKind
from gleaner.github.errors import GitHubErrorKind
from tests.helpers import github_events as ev
from tests.helpers.fake_github import FakeGitHub

if typ.TYPE_CHECKING:
    from gleaner.activity.models import ActivityResult


def run_async[T](coro: typ.Coroutine[typ.Any, typ.Any, T]) -> T:
    """Run async coroutines in sync BDD step functions."""
    return asyncio.run(coro)


class FeedContext(typ.TypedDict, total=False):
    """Shared state used by BDD steps."""

    fake: FakeGitHub
    events: list[dict[str, typ.Any]]
    result: ActivityResult


@scenario("../activity_feed.feature", "Opened issues appear and pushes are dropped")
def test_opened_issues_appear() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario(
    "../activity_feed.feature",
    "Trimmed pull request closes are enriched into merges",
)
def test_trimmed_closes_are_enriched() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario("../activity_feed.feature", "Activity in forks is hidden")
def test_fork_activity_is_hidden() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario(
    "../activity_feed.feature",
    "A failing fork lookup keeps the item but marks the feed partial",
)
def test_failing_fork_lookup_is_partial() -> None:
    """Wrap the pytest-bdd scenario."""


@pytest.fixture
def feed_context() -> FeedContext:
    """Provision an empty fake GitHub."""
    return {"fake": FakeGitHub(), "events": []}


@given(
    parsers.parse('"{login}" opened issue {number:d} titled "{title}" in "{repo}"')
)
def given_issue_opened(
    feed_context: FeedContext, login: str, number: int, title: str, repo: str
) -> None:
    """Queue an opened-issue event."""
    feed_context["events"].append(
        ev.issue_opened(number, title, repo=repo, login=login)
    )


@given(parsers.parse('"{login}" pushed to "{repo}"'))
def given_push(feed_context: FeedContext, login: str, repo: str) -> None:
    """Queue a push event."""
    feed_context["events"].append(ev.push(repo=repo, login=login))


@given(
    parsers.parse(
        '"{login}" closed pull request {number:d} in "{repo}" without details'
    )
)
def given_trimmed_close(
    feed_context: FeedContext, login: str, number: int, repo: str
) -> None:
    """Queue a closed pull request whose payload lacks title and merge state."""
    feed_context["events"].append(
        ev.pull_request(
            "closed", number, include_html_url=False, repo=repo, login=login
        )
    )


@given(parsers.parse('repository "{repo}" is not a fork'))
def given_not_fork(feed_context: FeedContext, repo: str) -> None:
    """Answer fork lookups for ``repo`` with ``fork: false``."""
    feed_context["fake"].json(f"/repos/{repo}", {"fork": False})


@given(parsers.parse('repository "{repo}" is a fork'))
def given_fork(feed_context: FeedContext, repo: str) -> None:
    """Answer fork lookups for ``repo`` with ``fork: true``."""
    feed_context["fake"].json(f"/repos/{repo}", {"fork": True})


@given(parsers.parse('lookups of repository "{repo}" fail'))
def given_fork_lookup_fails(feed_context: FeedContext, repo: str) -> None:
    """Answer fork lookups for ``repo`` with a server error."""
    feed_context["fake"].json(f"/repos/{repo}", {"message": "boom"}, status=500)


@given(
    parsers.parse(
        'pull request {number:d} in "{repo}" was merged with title "{title}"'
    )
)
def given_merged_detail(
    feed_context: FeedContext, number: int, repo: str, title: str
) -> None:
    """Serve pull-request detail showing a merge."""
    feed_context["fake"].json(
        f"/repos/{repo}/pulls/{number}",
        {
            "number": number,
            "title": title,
            "html_url": f"https://github.com/{repo}/pull/{number}",
            "merged_at": "2026-01-02T00:00:00Z",
        },
    )


@when(parsers.parse('the activity feed for "{username}" is aggregated'))
def when_aggregated(feed_context: FeedContext, username: str) -> None:
    """Serve the queued events as one page and aggregate them."""
    fake = feed_context["fake"]
    fake.events_page(username, 1, feed_context["events"])
    aggregator = ActivityAggregator(fake.client())
    feed_context["result"] = run_async(aggregator.get_recent_activity(username))


@then(
    parsers.parse('the feed contains exactly one "{kind}" item titled "{title}"')
)
def then_single_item(feed_context: FeedContext, kind: str, title: str) -> None:
    """Assert the feed holds a single item of ``kind``."""
    items = feed_context["result"].data.items
    assert len(items) == 1, f"expected one item, got {len(items)}"
    assert items[0].kind is ActivityKind(kind)
    assert items[0].title == title


@then("the feed is empty")
def then_empty(feed_context: FeedContext) -> None:
    """Assert no item survived filtering."""
    assert feed_context["result"].data.items == ()


@then("the feed is complete")
def then_complete(feed_context: FeedContext) -> None:
    """Assert no upstream failure was absorbed."""
    data = feed_context["result"].data
    assert data.partial is False, "feed should not be partial"
    assert data.error_info is None


@then(parsers.parse('the feed is partial because of a "{kind}" error'))
def then_partial(feed_context: FeedContext, kind: str) -> None:
    """Assert the feed is partial with the first error's kind."""
    data = feed_context["result"].data
    assert data.partial is True, "feed should be partial"
    assert data.error_info is not None
    assert data.error_info.kind is GitHubErrorKind(kind)
