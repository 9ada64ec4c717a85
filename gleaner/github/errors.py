"""GitHub upstream error taxonomy.

Upstream failures are carried as :class:`GitHubErrorInfo` values rather than
raised, so retry policy and partial-run bookkeeping can branch on
:class:`GitHubErrorKind`. :class:`GitHubRequestError` wraps an info value for
the one place a failure must unwind the stack: an aggregation run that
collected nothing.
"""

from __future__ import annotations

import enum

import msgspec


class GitHubErrorKind(enum.StrEnum):
    """Closed classification of upstream failures."""

    RATE_LIMIT = "rate_limit"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    SERVER = "server"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


TRANSIENT_KINDS: frozenset[GitHubErrorKind] = frozenset(
    {
        GitHubErrorKind.NETWORK,
        GitHubErrorKind.TIMEOUT,
        GitHubErrorKind.SERVER,
        GitHubErrorKind.RATE_LIMIT,
    }
)


class GitHubErrorInfo(
    msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True, rename="camel"
):
    """Structured description of a failed upstream call.

    Attributes
    ----------
    kind
        Classified failure kind.
    status
        HTTP status, when a response was received.
    retry_after
        ``Retry-After`` header value in seconds.
    rate_limit_reset
        ``X-RateLimit-Reset`` header value (unix seconds).
    request_id
        ``X-GitHub-Request-Id`` header value.
    message
        Upstream message, truncated.

    """

    kind: GitHubErrorKind
    status: int | None = None
    retry_after: float | None = None
    rate_limit_reset: int | None = None
    request_id: str | None = None
    message: str | None = None

    @property
    def is_transient(self) -> bool:
        """Return True when the failure kind is worth retrying."""
        return self.kind in TRANSIENT_KINDS


class GitHubRequestError(RuntimeError):
    """Raised when an aggregation or lookup fails without a usable result."""

    def __init__(self, info: GitHubErrorInfo) -> None:
        """Initialise with the upstream error description."""
        self.info = info
        super().__init__(info.message or "GitHub API request failed")


class GitHubConfigError(RuntimeError):
    """Raised when GitHub client configuration is invalid."""

    @classmethod
    def empty_user_agent(cls) -> GitHubConfigError:
        """Return an error when no user agent is configured."""
        return cls("GitHub requests require a non-empty User-Agent")

    @classmethod
    def invalid_timeout(cls, value: float) -> GitHubConfigError:
        """Return an error for a non-positive request timeout."""
        return cls(f"GitHub request timeout must be positive, got: {value}")
