"""Structured log events for activity aggregation runs.

Usage
-----
>>> event_logger = AggregationEventLogger()
>>> event_logger.log_run_started(username="octocat", limit=30, preview=False)

"""

from __future__ import annotations

import enum
import typing as typ

from gleaner.logging import get_logger, log_event

if typ.TYPE_CHECKING:
    import datetime as dt

    from gleaner.github.errors import GitHubErrorInfo

logger = get_logger(__name__)


class AggregationEventType(enum.StrEnum):
    """Structured log event types for aggregation runs."""

    RUN_STARTED = "aggregation.run.started"
    RUN_COMPLETED = "aggregation.run.completed"
    RUN_FAILED = "aggregation.run.failed"
    PARTIAL_CAUSE = "aggregation.partial.cause"


class AggregationEventLogger:
    """Emit structured aggregation events via femtologging."""

    def log_run_started(self, *, username: str, limit: int, preview: bool) -> None:
        """Log the start of one aggregation run."""
        log_event(
            logger,
            "INFO",
            AggregationEventType.RUN_STARTED,
            username=username,
            limit=limit,
            preview=preview,
        )

    def log_run_completed(  # noqa: PLR0913
        self,
        *,
        username: str,
        items: int,
        pages: int,
        partial: bool,
        duration: dt.timedelta,
    ) -> None:
        """Log a finished run with its item count, page count and partial flag."""
        log_event(
            logger,
            "INFO",
            AggregationEventType.RUN_COMPLETED,
            username=username,
            items=items,
            pages=pages,
            partial=partial,
            duration_seconds=duration.total_seconds(),
        )

    def log_run_failed(
        self,
        *,
        username: str,
        error: GitHubErrorInfo,
        duration: dt.timedelta,
    ) -> None:
        """Log a run that failed before collecting any item."""
        log_event(
            logger,
            "ERROR",
            AggregationEventType.RUN_FAILED,
            username=username,
            error_kind=error.kind,
            status=error.status,
            request_id=error.request_id,
            duration_seconds=duration.total_seconds(),
        )

    def log_partial_cause(
        self, *, username: str, stage: str, error: GitHubErrorInfo
    ) -> None:
        """Log an absorbed upstream failure that marks the run partial."""
        log_event(
            logger,
            "WARNING",
            AggregationEventType.PARTIAL_CAUSE,
            username=username,
            stage=stage,
            error_kind=error.kind,
            status=error.status,
        )
