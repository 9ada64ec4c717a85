"""Basic actor lookup for the profile endpoint."""

from __future__ import annotations

import typing as typ

from gleaner.github.client import Err, api_url
from gleaner.github.errors import GitHubErrorInfo, GitHubErrorKind, GitHubRequestError
from gleaner.github.models import GitHubUser

from .models import Profile
from .normalize import user_html_url

if typ.TYPE_CHECKING:
    from gleaner.github.client import UpstreamClient
    from gleaner.github.ratelimit import RateLimitTracker


async def fetch_profile(
    client: UpstreamClient,
    username: str,
    *,
    rate_limit: RateLimitTracker | None = None,
) -> Profile:
    """Look up ``username`` and return its login, permalink and avatar.

    Raises
    ------
    GitHubRequestError
        If the lookup fails or the response lacks a login or avatar.

    """
    result = await client.request_json(
        api_url(client.api_base, f"users/{username}"), into=GitHubUser
    )
    if isinstance(result, Err):
        if rate_limit is not None:
            rate_limit.observe_error(result.error)
        raise GitHubRequestError(result.error)

    if rate_limit is not None:
        rate_limit.observe_meta(result.meta)
    user = result.data
    if not user.login or not user.avatar_url:
        raise GitHubRequestError(
            GitHubErrorInfo(
                kind=GitHubErrorKind.UNKNOWN,
                status=200,
                request_id=result.meta.request_id,
                message="GitHub user response is missing login or avatar_url",
            )
        )
    return Profile(
        login=user.login,
        url=user.html_url or user_html_url(user.login),
        avatar_url=user.avatar_url,
    )
