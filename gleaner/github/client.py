"""Resilient GitHub REST client.

Every call is bounded by a timeout, classified into a
:class:`~gleaner.github.errors.GitHubErrorKind` on failure, and retried per
:class:`~gleaner.github.retry.RetryPolicy`. Failures are returned as
:class:`Err` values, never raised, so callers decide what a failure means for
them (abort, fail open, or mark a run partial).
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses
import json
import random
import time
import typing as typ
import urllib.parse

import httpx
import msgspec

from gleaner.logging import get_logger, log_event

from .errors import GitHubConfigError, GitHubErrorInfo, GitHubErrorKind
from .retry import RetryPolicy

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.github.com"
_DEFAULT_TIMEOUT_S = 8.0
_DEFAULT_USER_AGENT = "gleaner/0.1"
_API_VERSION = "2022-11-28"
_MESSAGE_LIMIT = 200

_HTTP_UNAUTHORIZED = 401
_HTTP_FORBIDDEN = 403
_HTTP_NOT_FOUND = 404
_HTTP_UNPROCESSABLE = 422
_HTTP_RATE_LIMITED = 429
_HTTP_SERVER_ERROR_THRESHOLD = 500

_RATE_LIMIT_MARKERS = ("rate limit", "secondary rate limit", "abuse detection")


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubClientConfig:
    """Configuration for the GitHub REST client."""

    token: str | None = None
    api_base: str = DEFAULT_API_BASE
    timeout_s: float = _DEFAULT_TIMEOUT_S
    user_agent: str = _DEFAULT_USER_AGENT
    retry: RetryPolicy = dataclasses.field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Reject configurations that would produce unusable requests."""
        if not self.user_agent.strip():
            raise GitHubConfigError.empty_user_agent()
        if self.timeout_s <= 0:
            raise GitHubConfigError.invalid_timeout(self.timeout_s)


class GitHubResponseMeta(
    msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True, rename="camel"
):
    """Diagnostics parsed from every upstream response's headers."""

    request_id: str | None = None
    rate_limit_remaining: int | None = None
    rate_limit_reset: int | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful upstream call."""

    data: T
    meta: GitHubResponseMeta


@dataclasses.dataclass(frozen=True, slots=True)
class Err:
    """Failed upstream call."""

    error: GitHubErrorInfo


type GitHubResult[T] = Ok[T] | Err


class UpstreamClient(typ.Protocol):
    """Interface used by the event source, resolvers and profile lookup."""

    @property
    def api_base(self) -> str:
        """Base URL for REST endpoints, without a trailing slash."""
        ...

    async def request(self, url: str) -> GitHubResult[httpx.Response]:
        """Issue a GET and return the raw response on success."""
        ...

    async def request_json[T](self, url: str, *, into: type[T]) -> GitHubResult[T]:
        """Issue a GET and decode the JSON body into ``into``."""
        ...


def api_url(base: str, path: str, **params: str | int) -> str:
    """Join ``path`` onto ``base`` and append query parameters."""
    url = f"{base.rstrip('/')}/{path.lstrip('/')}"
    if params:
        query = urllib.parse.urlencode(
            {key: str(value) for key, value in params.items()}
        )
        url = f"{url}?{query}"
    return url


def _int_header(headers: httpx.Headers, name: str) -> int | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(float(raw.strip()))
    except ValueError:
        return None


def _retry_after(headers: httpx.Headers) -> float | None:
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw.strip())
    except ValueError:
        return None


def extract_meta(headers: httpx.Headers) -> GitHubResponseMeta:
    """Read request id and rate-limit headers, tolerating malformed values."""
    return GitHubResponseMeta(
        request_id=headers.get("x-github-request-id"),
        rate_limit_remaining=_int_header(headers, "x-ratelimit-remaining"),
        rate_limit_reset=_int_header(headers, "x-ratelimit-reset"),
    )


def parse_error_message(text: str) -> str | None:
    """Return the ``message`` of a JSON error body, else the raw text."""
    if not text:
        return None
    try:
        parsed = json.loads(text)
    except ValueError:
        return text
    if isinstance(parsed, dict):
        message = parsed.get("message")
        if isinstance(message, str):
            return message
    return text


def _is_rate_limit_message(message: str | None) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(marker in lowered for marker in _RATE_LIMIT_MARKERS)


def classify_status(status: int, message: str | None) -> GitHubErrorKind:  # noqa: PLR0911
    """Map an error status and message onto a :class:`GitHubErrorKind`."""
    if status == _HTTP_UNAUTHORIZED:
        return GitHubErrorKind.UNAUTHORIZED
    if status == _HTTP_RATE_LIMITED:
        return GitHubErrorKind.RATE_LIMIT
    if status == _HTTP_FORBIDDEN:
        if _is_rate_limit_message(message):
            return GitHubErrorKind.RATE_LIMIT
        return GitHubErrorKind.FORBIDDEN
    if status == _HTTP_NOT_FOUND:
        return GitHubErrorKind.NOT_FOUND
    if status == _HTTP_UNPROCESSABLE:
        return GitHubErrorKind.VALIDATION
    if status >= _HTTP_SERVER_ERROR_THRESHOLD:
        return GitHubErrorKind.SERVER
    return GitHubErrorKind.UNKNOWN


def _truncate(message: str | None) -> str | None:
    if not message:
        return None
    return message[:_MESSAGE_LIMIT]


def error_from_response(
    response: httpx.Response, meta: GitHubResponseMeta
) -> GitHubErrorInfo:
    """Build the error description for a non-2xx response."""
    message = parse_error_message(response.text)
    return GitHubErrorInfo(
        kind=classify_status(response.status_code, message),
        status=response.status_code,
        retry_after=_retry_after(response.headers),
        rate_limit_reset=meta.rate_limit_reset,
        request_id=meta.request_id,
        message=_truncate(message),
    )


class GitHubRestClient:
    """GitHub REST implementation of :class:`UpstreamClient`."""

    def __init__(  # noqa: PLR0913
        self,
        config: GitHubClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
        clock: cabc.Callable[[], float] = time.time,
        rng: cabc.Callable[[], float] = random.random,
    ) -> None:
        """Initialise the client, creating an owned HTTP client if needed."""
        self._config = config or GitHubClientConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self._config.timeout_s
        )
        self._headers = self._build_headers()
        self._sleep = sleep
        self._clock = clock
        self._rng = rng

    @property
    def api_base(self) -> str:
        """Base URL for REST endpoints, without a trailing slash."""
        return self._config.api_base.rstrip("/")

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self._config.user_agent,
            "X-GitHub-Api-Version": _API_VERSION,
        }
        token = (self._config.token or "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def request(self, url: str) -> GitHubResult[httpx.Response]:
        """Issue a GET with timeout, classification and bounded retries."""
        policy = self._config.retry
        attempt = 0
        while True:
            result = await self._attempt(url)
            if isinstance(result, Ok):
                return result

            error = result.error
            if not policy.should_retry(attempt, error):
                return result

            delay = policy.backoff(attempt, error, now=self._clock(), rng=self._rng)
            if delay is None:
                log_event(
                    logger,
                    "WARNING",
                    "github.request.abandoned",
                    url=url,
                    kind=error.kind,
                    retry_after=error.retry_after,
                    rate_limit_reset=error.rate_limit_reset,
                )
                return result

            log_event(
                logger,
                "DEBUG",
                "github.request.retry",
                url=url,
                kind=error.kind,
                attempt=attempt + 1,
                delay_seconds=delay,
            )
            await self._sleep(delay)
            attempt += 1

    async def request_json[T](self, url: str, *, into: type[T]) -> GitHubResult[T]:
        """Issue a GET and decode the JSON body with msgspec."""
        result = await self.request(url)
        if isinstance(result, Err):
            return result

        response = result.data
        try:
            data = msgspec.json.decode(response.content, type=into)
        except msgspec.DecodeError as exc:
            return Err(
                GitHubErrorInfo(
                    kind=GitHubErrorKind.UNKNOWN,
                    status=response.status_code,
                    request_id=result.meta.request_id,
                    message=_truncate(str(exc)) or "Invalid JSON response",
                )
            )
        return Ok(data, result.meta)

    async def _attempt(self, url: str) -> GitHubResult[httpx.Response]:
        """Perform one bounded GET without retrying."""
        try:
            async with asyncio.timeout(self._config.timeout_s):
                response = await self._client.get(url, headers=self._headers)
        except (TimeoutError, httpx.TimeoutException):
            return Err(
                GitHubErrorInfo(
                    kind=GitHubErrorKind.TIMEOUT,
                    message="GitHub API request timed out",
                )
            )
        except httpx.RequestError as exc:
            return Err(
                GitHubErrorInfo(
                    kind=GitHubErrorKind.NETWORK,
                    message=_truncate(str(exc)) or "Network error",
                )
            )

        meta = extract_meta(response.headers)
        if response.is_success:
            return Ok(response, meta)
        return Err(error_from_response(response, meta))
