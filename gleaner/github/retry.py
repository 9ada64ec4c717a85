"""Retry and backoff policy for GitHub requests.

The policy is pure: given the attempt number and the error that ended it, it
decides whether to retry and how long to wait. Keeping it free of I/O lets
the schedule be tested without a network or a clock.
"""

from __future__ import annotations

import dataclasses
import random
import typing as typ

from .errors import GitHubErrorKind

if typ.TYPE_CHECKING:
    from .errors import GitHubErrorInfo

_DEFAULT_RETRIES = 2
_DEFAULT_BASE_DELAY_S = 0.25
_DEFAULT_MAX_DELAY_S = 2.0
_DEFAULT_MAX_RETRY_AFTER_S = 1.0
_DEFAULT_JITTER_S = 0.1


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded exponential backoff with an upstream-delay ceiling.

    Attributes
    ----------
    retries
        Additional attempts after the first one.
    base_delay_s
        Delay before the first retry, doubled on each further retry.
    max_delay_s
        Cap applied to the exponential schedule (before jitter).
    max_retry_after_s
        Longest upstream-requested delay the client will honour. Longer
        waits abandon the request instead of blocking the caller.
    jitter_s
        Upper bound of the uniform jitter added to exponential delays.

    """

    retries: int = _DEFAULT_RETRIES
    base_delay_s: float = _DEFAULT_BASE_DELAY_S
    max_delay_s: float = _DEFAULT_MAX_DELAY_S
    max_retry_after_s: float = _DEFAULT_MAX_RETRY_AFTER_S
    jitter_s: float = _DEFAULT_JITTER_S

    def should_retry(self, attempt: int, error: GitHubErrorInfo) -> bool:
        """Return True when ``attempt`` (0-based) may be followed by another."""
        return attempt < self.retries and error.is_transient

    def backoff(
        self,
        attempt: int,
        error: GitHubErrorInfo,
        *,
        now: float,
        rng: typ.Callable[[], float] = random.random,
    ) -> float | None:
        """Return the delay before the next attempt, or ``None`` to give up.

        An explicit ``Retry-After`` wins; a rate-limit error without one waits
        until ``X-RateLimit-Reset``. Either is used only when it fits under
        ``max_retry_after_s``.
        """
        requested = _requested_delay(error, now=now)
        if requested is not None:
            return requested if requested <= self.max_retry_after_s else None

        exponential = min(self.base_delay_s * 2**attempt, self.max_delay_s)
        return exponential + rng() * self.jitter_s


def _requested_delay(error: GitHubErrorInfo, *, now: float) -> float | None:
    if error.retry_after is not None:
        return max(0.0, error.retry_after)
    reset = error.rate_limit_reset
    if error.kind is GitHubErrorKind.RATE_LIMIT and reset is not None:
        return max(0.0, reset - now)
    return None
