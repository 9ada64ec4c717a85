"""Rate-limit observations accumulated across one aggregation run."""

from __future__ import annotations

import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from .client import GitHubResponseMeta
    from .errors import GitHubErrorInfo


class RateLimitInfo(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Most recently observed ``X-RateLimit-*`` values."""

    remaining: int | None = None
    reset: int | None = None


class RateLimitTracker:
    """Last-write-wins accumulator for rate-limit headers.

    Each field keeps the value from the most recent upstream call that
    reported it; a call that omits a header leaves the previous value alone.
    """

    def __init__(self) -> None:
        """Start with no observations."""
        self._remaining: int | None = None
        self._reset: int | None = None

    def observe_meta(self, meta: GitHubResponseMeta) -> None:
        """Record headers from a successful call."""
        if meta.rate_limit_remaining is not None:
            self._remaining = meta.rate_limit_remaining
        if meta.rate_limit_reset is not None:
            self._reset = meta.rate_limit_reset

    def observe_error(self, error: GitHubErrorInfo) -> None:
        """Record the reset carried by a failed call."""
        if error.rate_limit_reset is not None:
            self._reset = error.rate_limit_reset

    def snapshot(self) -> RateLimitInfo | None:
        """Return the accumulated values, or ``None`` when nothing was seen."""
        if self._remaining is None and self._reset is None:
            return None
        return RateLimitInfo(remaining=self._remaining, reset=self._reset)
