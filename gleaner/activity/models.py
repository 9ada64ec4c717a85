"""Canonical activity feed structures.

All structures serialize with camelCase keys and omit unset optional fields,
which is the JSON contract the presentation layer consumes.
"""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

import msgspec

from gleaner.github.errors import GitHubErrorInfo  # noqa: TC001
from gleaner.github.ratelimit import RateLimitInfo  # noqa: TC001


class ActivityKind(enum.StrEnum):
    """Closed set of activity item kinds."""

    ISSUE_OPENED = "issue_opened"
    PULL_REQUEST_OPENED = "pull_request_opened"
    PULL_REQUEST_REOPENED = "pull_request_reopened"
    PULL_REQUEST_CLOSED = "pull_request_closed"
    PULL_REQUEST_MERGED = "pull_request_merged"
    ISSUE_OR_PR_COMMENT = "issue_or_pr_comment"
    PULL_REQUEST_REVIEW = "pull_request_review"
    PULL_REQUEST_REVIEW_COMMENT = "pull_request_review_comment"
    RELEASE_PUBLISHED = "release_published"


class PullRequestReviewState(enum.StrEnum):
    """State of a submitted pull-request review."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    COMMENTED = "commented"
    DISMISSED = "dismissed"
    PENDING = "pending"
    UNKNOWN = "unknown"

    @classmethod
    def from_github(cls, value: object) -> PullRequestReviewState:
        """Map an upstream review state onto the enum, defaulting to UNKNOWN."""
        if not isinstance(value, str):
            return cls.UNKNOWN
        try:
            return cls(value.lower())
        except ValueError:
            return cls.UNKNOWN


class ActivityActor(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """The user who performed the activity."""

    login: str
    url: str
    avatar_url: str


class ActivityRepo(msgspec.Struct, kw_only=True, frozen=True):
    """The repository the activity happened in."""

    name: str
    url: str


class ActivityItem(
    msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True, rename="camel"
):
    """One normalized unit of public GitHub activity.

    Attributes
    ----------
    id
        Upstream event id.
    kind
        Activity classification.
    created_at
        When the upstream event happened.
    actor
        Who performed it.
    repo
        Where it happened.
    title
        Non-empty display title.
    url
        Canonical permalink; unique within one response.
    summary
        Whitespace-collapsed body excerpt of at most 160 characters.
    review_state
        Review verdict, set only for ``pull_request_review`` items.

    """

    id: str
    kind: ActivityKind
    created_at: dt.datetime
    actor: ActivityActor
    repo: ActivityRepo
    title: str
    url: str
    summary: str | None = None
    review_state: PullRequestReviewState | None = None


class ActivityResponse(
    msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True, rename="camel"
):
    """The feed returned to callers and stored in the edge cache."""

    username: str
    generated_at: dt.datetime
    items: tuple[ActivityItem, ...] = ()
    partial: bool = False
    error_info: GitHubErrorInfo | None = None


class ActivityResult(msgspec.Struct, kw_only=True, frozen=True):
    """An aggregation outcome plus the rate-limit state observed producing it."""

    data: ActivityResponse
    rate_limit: RateLimitInfo | None = None


class Profile(msgspec.Struct, kw_only=True, frozen=True, rename="camel"):
    """Basic actor lookup served by ``/api/profile.json``."""

    login: str
    url: str
    avatar_url: str
