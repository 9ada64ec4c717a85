"""Typed shapes for the GitHub REST responses Gleaner consumes.

Only the fields the feed needs are declared; msgspec ignores the rest. Event
payloads stay untyped dictionaries because their shape depends on the event
type and GitHub trims them unpredictably.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import typing as typ

import msgspec


class RawActor(msgspec.Struct, kw_only=True, frozen=True):
    """The ``actor`` object of a public event."""

    login: str
    avatar_url: str = ""
    url: str = ""


class RawRepo(msgspec.Struct, kw_only=True, frozen=True):
    """The ``repo`` object of a public event (``owner/name`` plus API URL)."""

    name: str
    url: str = ""


class RawEvent(msgspec.Struct, kw_only=True, frozen=True):
    """One entry from ``GET /users/{username}/events/public``."""

    id: str
    type: str
    actor: RawActor
    repo: RawRepo
    created_at: dt.datetime
    payload: dict[str, typ.Any] = msgspec.field(default_factory=dict)


class RepoSummary(msgspec.Struct, kw_only=True, frozen=True):
    """Subset of ``GET /repos/{owner}/{repo}`` used for fork filtering."""

    fork: bool = False


class PullRequestDetail(msgspec.Struct, kw_only=True, frozen=True):
    """Subset of ``GET /repos/{owner}/{repo}/pulls/{n}`` used for enrichment."""

    number: int | None = None
    title: str | None = None
    html_url: str | None = None
    body: str | None = None
    merged_at: str | None = None

    @property
    def merged(self) -> bool:
        """Return True when the pull request has been merged."""
        return self.merged_at is not None


class GitHubUser(msgspec.Struct, kw_only=True, frozen=True):
    """Subset of ``GET /users/{username}`` used for the profile endpoint."""

    login: str | None = None
    html_url: str | None = None
    avatar_url: str | None = None
