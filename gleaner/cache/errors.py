"""Cache storage errors."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    @classmethod
    def for_column(cls, column: str) -> TimezoneAwareRequiredError:
        """Return an error naming the offending column."""
        return cls(f"{column} must be timezone-aware")
