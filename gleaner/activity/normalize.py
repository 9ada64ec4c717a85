"""Map raw public events onto canonical activity items.

``normalize`` is pure: the same event and enrichment always yield the same
item (or ``None``). It never raises for unexpected payload shapes; anything it
cannot make sense of is dropped. The feed's scope is "what the user said or
shipped", so push events and every other unsupported type are dropped too.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import re
import typing as typ

from gleaner.github.enrichment import pull_request_api_url

from .models import (
    ActivityActor,
    ActivityItem,
    ActivityKind,
    ActivityRepo,
    PullRequestReviewState,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from gleaner.github.models import PullRequestDetail, RawEvent

HTML_BASE = "https://github.com"
SUMMARY_MAX_LENGTH = 160
_ELLIPSIS = "…"
_WHITESPACE = re.compile(r"\s+")

_PULL_REQUEST_ACTIONS: dict[str, ActivityKind] = {
    "opened": ActivityKind.PULL_REQUEST_OPENED,
    "reopened": ActivityKind.PULL_REQUEST_REOPENED,
    "closed": ActivityKind.PULL_REQUEST_CLOSED,
}
_PULL_REQUEST_VERBS: dict[ActivityKind, str] = {
    ActivityKind.PULL_REQUEST_OPENED: "Opened",
    ActivityKind.PULL_REQUEST_REOPENED: "Reopened",
    ActivityKind.PULL_REQUEST_CLOSED: "Closed",
    ActivityKind.PULL_REQUEST_MERGED: "Merged",
}
# GitHub's events API reports review submissions with action "created".
_REVIEW_ACTIONS = frozenset({"created", "submitted"})


def summarize_text(value: object, max_length: int = SUMMARY_MAX_LENGTH) -> str | None:
    """Collapse whitespace in ``value`` and cut it to ``max_length`` characters.

    Returns ``None`` for non-strings and for text that is empty once
    whitespace is collapsed. Truncated text ends with an ellipsis and stays
    within ``max_length``.
    """
    if not isinstance(value, str):
        return None
    collapsed = _WHITESPACE.sub(" ", value.replace("\r\n", "\n")).strip()
    if not collapsed:
        return None
    if len(collapsed) <= max_length:
        return collapsed
    return f"{collapsed[: max_length - 1].rstrip()}{_ELLIPSIS}"


def user_html_url(login: str) -> str:
    """Return the profile permalink for ``login``."""
    return f"{HTML_BASE}/{login}"


def repo_html_url(repo_name: str) -> str:
    """Return the permalink for ``owner/name``."""
    return f"{HTML_BASE}/{repo_name}"


def pull_request_html_url(repo_name: str, number: int) -> str:
    """Return the deterministic permalink of a pull request."""
    return f"{HTML_BASE}/{repo_name}/pull/{number}"


def _section(payload: dict[str, typ.Any], key: str) -> dict[str, typ.Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def _text(section: dict[str, typ.Any], key: str) -> str | None:
    value = section.get(key)
    return value if isinstance(value, str) and value else None


def _title(section: dict[str, typ.Any], key: str) -> str | None:
    value = section.get(key)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _number(section: dict[str, typ.Any], key: str) -> int | None:
    value = section.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclasses.dataclass(frozen=True, slots=True)
class PullRequestFields:
    """Pull-request fields recovered from a (possibly trimmed) event payload."""

    number: int | None = None
    title: str | None = None
    html_url: str | None = None
    body: str | None = None
    merged: bool | None = None
    api_url: str | None = None


def pull_request_fields(payload: dict[str, typ.Any]) -> PullRequestFields:
    """Extract whatever pull-request fields the payload still carries."""
    pr = _section(payload, "pull_request")
    merged: bool | None = None
    raw_merged = pr.get("merged")
    if isinstance(raw_merged, bool):
        merged = raw_merged
    elif "merged_at" in pr:
        merged = pr.get("merged_at") is not None
    return PullRequestFields(
        number=_number(pr, "number") or _number(payload, "number"),
        title=_title(pr, "title"),
        html_url=_text(pr, "html_url"),
        body=_text(pr, "body"),
        merged=merged,
        api_url=_text(pr, "url"),
    )


def _pull_request_api_url(
    event: RawEvent, fields: PullRequestFields, api_base: str
) -> str | None:
    if fields.api_url:
        return fields.api_url
    if fields.number is not None:
        return pull_request_api_url(api_base, event.repo.name, fields.number)
    return None


def _is_empty_commented_review(payload: dict[str, typ.Any]) -> bool:
    review = _section(payload, "review")
    state = PullRequestReviewState.from_github(review.get("state"))
    return (
        state is PullRequestReviewState.COMMENTED
        and summarize_text(review.get("body")) is None
    )


def needs_pull_request_fetch(event: RawEvent, api_base: str) -> str | None:
    """Return the pull-request API URL to fetch for ``event``, if any.

    A fetch is needed when a qualifying pull-request event lacks its title or,
    for ``closed``, any merged signal; or when a review or review comment
    lacks the pull-request title.
    """
    payload = event.payload
    action = payload.get("action")
    fields = pull_request_fields(payload)

    if event.type == "PullRequestEvent":
        if action not in _PULL_REQUEST_ACTIONS:
            return None
        needs_merged = action == "closed" and fields.merged is None
        if fields.title and not needs_merged:
            return None
        return _pull_request_api_url(event, fields, api_base)

    if event.type == "PullRequestReviewEvent":
        if action not in _REVIEW_ACTIONS or fields.title:
            return None
        if _is_empty_commented_review(payload):
            return None
        return _pull_request_api_url(event, fields, api_base)

    if event.type == "PullRequestReviewCommentEvent":
        if action != "created" or fields.title:
            return None
        return _pull_request_api_url(event, fields, api_base)

    return None


@dataclasses.dataclass(frozen=True, slots=True)
class _Base:
    """Fields shared by every item built from one event."""

    id: str
    created_at: dt.datetime
    actor: ActivityActor
    repo: ActivityRepo

    def item(
        self,
        kind: ActivityKind,
        *,
        title: str | None,
        url: str | None,
        summary: str | None = None,
        review_state: PullRequestReviewState | None = None,
    ) -> ActivityItem | None:
        if not title or not url:
            return None
        return ActivityItem(
            id=self.id,
            kind=kind,
            created_at=self.created_at,
            actor=self.actor,
            repo=self.repo,
            title=title,
            url=url,
            summary=summary,
            review_state=review_state,
        )


def _base(event: RawEvent) -> _Base:
    return _Base(
        id=event.id,
        created_at=event.created_at,
        actor=ActivityActor(
            login=event.actor.login,
            url=user_html_url(event.actor.login),
            avatar_url=event.actor.avatar_url,
        ),
        repo=ActivityRepo(name=event.repo.name, url=repo_html_url(event.repo.name)),
    )


def _suffix(number: int | None) -> str:
    return f" #{number}" if number is not None else ""


def _issue_opened(
    event: RawEvent, base: _Base, _detail: PullRequestDetail | None
) -> ActivityItem | None:
    payload = event.payload
    if payload.get("action") != "opened":
        return None
    issue = _section(payload, "issue")
    return base.item(
        ActivityKind.ISSUE_OPENED,
        title=_title(issue, "title"),
        url=_text(issue, "html_url"),
        summary=summarize_text(issue.get("body")),
    )


def _pull_request(
    event: RawEvent, base: _Base, detail: PullRequestDetail | None
) -> ActivityItem | None:
    payload = event.payload
    action = payload.get("action")
    kind = _PULL_REQUEST_ACTIONS.get(action) if isinstance(action, str) else None
    if kind is None:
        return None

    fields = pull_request_fields(payload)
    title = fields.title
    url = fields.html_url
    summary = summarize_text(fields.body)
    merged = fields.merged
    if detail is not None:
        title = title or (detail.title or "").strip() or None
        url = url or detail.html_url
        summary = summary or summarize_text(detail.body)
        if merged is None:
            merged = detail.merged

    if kind is ActivityKind.PULL_REQUEST_CLOSED and merged:
        kind = ActivityKind.PULL_REQUEST_MERGED
    if not url and fields.number is not None:
        url = pull_request_html_url(event.repo.name, fields.number)
    if not title:
        title = f"{_PULL_REQUEST_VERBS[kind]} pull request{_suffix(fields.number)}"
    return base.item(kind, title=title, url=url, summary=summary)


def _issue_comment(
    event: RawEvent, base: _Base, _detail: PullRequestDetail | None
) -> ActivityItem | None:
    payload = event.payload
    if payload.get("action") != "created":
        return None
    comment = _section(payload, "comment")
    return base.item(
        ActivityKind.ISSUE_OR_PR_COMMENT,
        title=_title(_section(payload, "issue"), "title"),
        url=_text(comment, "html_url"),
        summary=summarize_text(comment.get("body")),
    )


def _review(
    event: RawEvent, base: _Base, detail: PullRequestDetail | None
) -> ActivityItem | None:
    payload = event.payload
    if payload.get("action") not in _REVIEW_ACTIONS:
        return None

    review = _section(payload, "review")
    state = PullRequestReviewState.from_github(review.get("state"))
    summary = summarize_text(review.get("body"))
    # GitHub pairs an empty "commented" review with a separate review-comment
    # event for the same action; the empty review is noise.
    if state is PullRequestReviewState.COMMENTED and summary is None:
        return None

    fields = pull_request_fields(payload)
    title = fields.title
    url = _text(review, "html_url") or fields.html_url
    if detail is not None:
        title = title or (detail.title or "").strip() or None
        url = url or detail.html_url
    if not url and fields.number is not None:
        url = pull_request_html_url(event.repo.name, fields.number)
    title = title or f"Review on pull request{_suffix(fields.number)}"
    return base.item(
        ActivityKind.PULL_REQUEST_REVIEW,
        title=title,
        url=url,
        summary=summary,
        review_state=state,
    )


def _review_comment(
    event: RawEvent, base: _Base, detail: PullRequestDetail | None
) -> ActivityItem | None:
    payload = event.payload
    if payload.get("action") != "created":
        return None

    comment = _section(payload, "comment")
    fields = pull_request_fields(payload)
    title = fields.title
    if detail is not None:
        title = title or (detail.title or "").strip() or None
    url = _text(comment, "html_url") or fields.html_url
    if not url and fields.number is not None:
        url = pull_request_html_url(event.repo.name, fields.number)
    title = title or f"Review comment on pull request{_suffix(fields.number)}"
    return base.item(
        ActivityKind.PULL_REQUEST_REVIEW_COMMENT,
        title=title,
        url=url,
        summary=summarize_text(comment.get("body")),
    )


def _release(
    event: RawEvent, base: _Base, _detail: PullRequestDetail | None
) -> ActivityItem | None:
    payload = event.payload
    if payload.get("action") != "published":
        return None
    release = _section(payload, "release")
    return base.item(
        ActivityKind.RELEASE_PUBLISHED,
        title=_title(release, "name") or _title(release, "tag_name"),
        url=_text(release, "html_url"),
        summary=summarize_text(release.get("body")),
    )


type _Handler = cabc.Callable[
    [RawEvent, _Base, PullRequestDetail | None], ActivityItem | None
]

_HANDLERS: dict[str, _Handler] = {
    "IssuesEvent": _issue_opened,
    "PullRequestEvent": _pull_request,
    "IssueCommentEvent": _issue_comment,
    "PullRequestReviewEvent": _review,
    "PullRequestReviewCommentEvent": _review_comment,
    "ReleaseEvent": _release,
}


def normalize(
    event: RawEvent, pull_request: PullRequestDetail | None = None
) -> ActivityItem | None:
    """Return the activity item for ``event``, or ``None`` when it is dropped.

    ``pull_request`` is the resolved detail for events whose payload was
    trimmed; without it, missing pull-request titles and permalinks are
    synthesized from the pull-request number.
    """
    handler = _HANDLERS.get(event.type)
    if handler is None:
        return None
    return handler(event, _base(event), pull_request)


def normalize_preview(event: RawEvent) -> ActivityItem | None:
    """Normalize using only what the event payload already carries."""
    return normalize(event, None)
