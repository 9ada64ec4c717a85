"""Behavioural tests for the edge-cached activity endpoint."""

from __future__ import annotations

import asyncio
import typing as typ

import falcon.testing
import pytest
from pytest_bdd import given, parsers, scenario, then, when

from tests.helpers import github_events as ev
from tests.helpers.fake_github import FakeGitHub
from tests.helpers.service import fake_service

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result


def run_async[T](coro: typ.Coroutine[typ.Any, typ.Any, T]) -> T:
    """Run async coroutines in sync BDD step functions."""
    return asyncio.run(coro)


class EdgeCacheContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    fake: FakeGitHub
    username: str
    config: dict[str, typ.Any]
    responses: list[Result]


@scenario("../edge_cache.feature", "Repeated requests are served from the cache")
def test_repeated_requests_hit_cache() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario(
    "../edge_cache.feature",
    "Stale responses are served while refreshing in the background",
)
def test_stale_responses_refresh() -> None:
    """Wrap the pytest-bdd scenario."""


@scenario(
    "../edge_cache.feature",
    "A rate-limited upstream is not called again before its reset",
)
def test_rate_limited_upstream_is_spared() -> None:
    """Wrap the pytest-bdd scenario."""


@pytest.fixture
def edge_context() -> EdgeCacheContext:
    """Provision an empty fake GitHub and default configuration."""
    return {"fake": FakeGitHub(), "config": {}}


@given(parsers.parse('a Gleaner service for "{username}" with one opened issue'))
def given_service_with_issue(edge_context: EdgeCacheContext, username: str) -> None:
    """Serve one opened issue in a non-fork repository."""
    fake = edge_context["fake"]
    fake.json("/repos/acme/widget", {"fork": False})
    fake.events_page(username, 1, [ev.issue_opened(1, "Fix bug", login=username)])
    edge_context["username"] = username


@given(
    parsers.parse('a Gleaner service for "{username}" whose GitHub quota is exhausted')
)
def given_service_rate_limited(
    edge_context: EdgeCacheContext, username: str
) -> None:
    """Answer every events request with a primary rate-limit error."""
    edge_context["fake"].json(
        f"/users/{username}/events/public",
        {"message": "API rate limit exceeded"},
        status=403,
        headers={"Retry-After": "120", "X-RateLimit-Reset": "4102444800"},
    )
    edge_context["username"] = username


@given(parsers.parse("responses stay fresh for {seconds:d} seconds"))
def given_max_age(edge_context: EdgeCacheContext, seconds: int) -> None:
    """Override the cache max-age."""
    edge_context["config"]["cache_max_age_s"] = seconds


@when(parsers.parse("I request GET {path} {count:d} times"))
def when_request_repeatedly(
    edge_context: EdgeCacheContext, path: str, count: int
) -> None:
    """Issue ``count`` sequential requests, then let refreshes finish."""

    async def _requests() -> list[Result]:
        app, deps = fake_service(
            edge_context["fake"],
            username=edge_context["username"],
            **edge_context["config"],
        )
        async with falcon.testing.ASGIConductor(app) as conductor:
            responses = [await conductor.simulate_get(path) for _ in range(count)]
            await deps.scheduler.wait_idle()
        return responses

    edge_context["responses"] = run_async(_requests())


@then(parsers.parse('the X-Cache headers are "{states}"'))
def then_cache_states(edge_context: EdgeCacheContext, states: str) -> None:
    """Assert the ``X-Cache`` header of each response in order."""
    observed = [response.headers["x-cache"] for response in edge_context["responses"]]
    assert observed == states.split(","), f"unexpected X-Cache sequence {observed}"


@then(parsers.parse("every response has status {status:d}"))
def then_every_status(edge_context: EdgeCacheContext, status: int) -> None:
    """Assert all responses share ``status``."""
    codes = [response.status_code for response in edge_context["responses"]]
    assert codes == [status] * len(codes), f"unexpected statuses {codes}"


@then(parsers.parse('the last response carries X-RateLimit-Reset "{reset}"'))
def then_reset_header(edge_context: EdgeCacheContext, reset: str) -> None:
    """Assert the reset instant is surfaced to the caller."""
    assert edge_context["responses"][-1].headers["x-ratelimit-reset"] == reset


@then(parsers.parse("GitHub served the public events {count:d} times"))
def then_events_count(edge_context: EdgeCacheContext, count: int) -> None:
    """Assert how often the upstream events endpoint was called."""
    path = f"/users/{edge_context['username']}/events/public"
    assert edge_context["fake"].count(path) == count
