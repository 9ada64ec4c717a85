"""Structured log events for edge-cache decisions."""

from __future__ import annotations

import enum
import typing as typ

from gleaner.logging import get_logger, log_event

if typ.TYPE_CHECKING:
    from gleaner.github.errors import GitHubErrorInfo

logger = get_logger(__name__)


class CacheEventType(enum.StrEnum):
    """Structured log event types for the edge cache."""

    SERVED = "cache.served"
    REFRESH_SCHEDULED = "cache.refresh.scheduled"
    REFRESH_SKIPPED = "cache.refresh.skipped"
    REFRESH_COMPLETED = "cache.refresh.completed"
    REFRESH_FAILED = "cache.refresh.failed"
    RATE_LIMIT_RECORDED = "cache.ratelimit.recorded"
    CORRUPT_ENTRY = "cache.entry.corrupt"


class CacheEventLogger:
    """Emit structured cache events via femtologging."""

    def log_served(
        self, *, key: str, state: str, age_seconds: float | None = None
    ) -> None:
        """Log which cache state a response was served from."""
        log_event(
            logger,
            "DEBUG",
            CacheEventType.SERVED,
            key=key,
            state=state,
            age_seconds=age_seconds,
        )

    def log_refresh_scheduled(self, *, key: str) -> None:
        """Log a background refresh handed to the scheduler."""
        log_event(logger, "INFO", CacheEventType.REFRESH_SCHEDULED, key=key)

    def log_refresh_skipped(self, *, key: str, reason: str) -> None:
        """Log a refresh suppressed by a lease or the rate-limit side channel."""
        log_event(
            logger, "DEBUG", CacheEventType.REFRESH_SKIPPED, key=key, reason=reason
        )

    def log_refresh_completed(self, *, key: str) -> None:
        """Log a background refresh that replaced the cached entry."""
        log_event(logger, "INFO", CacheEventType.REFRESH_COMPLETED, key=key)

    def log_refresh_failed(self, *, key: str, error: GitHubErrorInfo) -> None:
        """Log a background refresh that left the stale entry in place."""
        log_event(
            logger,
            "WARNING",
            CacheEventType.REFRESH_FAILED,
            key=key,
            error_kind=error.kind,
            status=error.status,
        )

    def log_rate_limit_recorded(self, *, key: str, reset: int) -> None:
        """Log a rate-limit reset stored in the side channel."""
        log_event(
            logger, "WARNING", CacheEventType.RATE_LIMIT_RECORDED, key=key, reset=reset
        )

    def log_corrupt_entry(self, *, key: str) -> None:
        """Log a stored value that could not be decoded and was ignored."""
        log_event(logger, "WARNING", CacheEventType.CORRUPT_ENTRY, key=key)
