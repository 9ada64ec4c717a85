"""Unit tests for aggregation and edge-cache structured logging."""

from __future__ import annotations

import datetime as dt

from gleaner.activity.observability import (
    AggregationEventLogger,
    AggregationEventType,
)
from gleaner.cache.observability import CacheEventLogger, CacheEventType
from gleaner.github.errors import GitHubErrorInfo, GitHubErrorKind
from tests.helpers.log_capture import capture_logs


class TestAggregationEventLogger:
    """Tests for aggregation run events."""

    def test_run_completed_reports_counts(self) -> None:
        """Completion lines carry item and page counts plus duration."""
        with capture_logs("gleaner.activity.observability") as capture:
            AggregationEventLogger().log_run_completed(
                username="octocat",
                items=3,
                pages=2,
                partial=True,
                duration=dt.timedelta(milliseconds=1500),
            )
            record = capture.wait_for(AggregationEventType.RUN_COMPLETED)

        assert record.level == "INFO"
        assert "items=3 pages=2 partial=True" in record.message
        assert "duration_seconds=1.500" in record.message

    def test_partial_cause_is_a_warning(self) -> None:
        """Absorbed failures are logged with their stage and kind."""
        with capture_logs("gleaner.activity.observability") as capture:
            AggregationEventLogger().log_partial_cause(
                username="octocat",
                stage="fork",
                error=GitHubErrorInfo(kind=GitHubErrorKind.SERVER, status=502),
            )
            record = capture.wait_for(AggregationEventType.PARTIAL_CAUSE)

        assert record.level.startswith("WARN")
        assert "stage=fork error_kind=server status=502" in record.message


class TestCacheEventLogger:
    """Tests for edge-cache events."""

    def test_refresh_failed_names_key_and_kind(self) -> None:
        """Failed refreshes record the key and the upstream error."""
        with capture_logs("gleaner.cache.observability") as capture:
            CacheEventLogger().log_refresh_failed(
                key="/api/activity.json?username=octocat&v=1",
                error=GitHubErrorInfo(kind=GitHubErrorKind.TIMEOUT),
            )
            record = capture.wait_for(CacheEventType.REFRESH_FAILED)

        assert "key=/api/activity.json?username=octocat&v=1" in record.message
        assert "error_kind=timeout status=-" in record.message

    def test_served_is_debug(self) -> None:
        """Per-request serving decisions stay at DEBUG."""
        with capture_logs("gleaner.cache.observability") as capture:
            CacheEventLogger().log_served(key="k", state="HIT", age_seconds=12.0)
            record = capture.wait_for(CacheEventType.SERVED)

        assert record.level == "DEBUG"
        assert "state=HIT age_seconds=12.000" in record.message
