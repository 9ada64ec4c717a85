"""Freshness classification for edge-cached responses.

Age is measured from the response's own ``generatedAt`` rather than any
transport-level timestamp, so entries replayed from a slower store classify
the same way as entries written a moment ago.
"""

from __future__ import annotations

import dataclasses
import enum


class Freshness(enum.StrEnum):
    """Freshness of a cached response relative to a :class:`CachePolicy`."""

    FRESH = "fresh"
    STALE = "stale"
    EXPIRED = "expired"

    @property
    def needs_refresh(self) -> bool:
        """Return True for stale and expired entries."""
        return self is not Freshness.FRESH


@dataclasses.dataclass(frozen=True, slots=True)
class CachePolicy:
    """Max-age and stale-while-revalidate windows, in seconds."""

    max_age_seconds: int = 60
    stale_while_revalidate_seconds: int = 300

    def classify(self, age_seconds: float | None) -> Freshness:
        """Classify an entry of the given age.

        ``age <= max_age`` is fresh, ``age <= max_age + swr`` is stale, and
        anything older, or of unknown age, is expired.
        """
        if age_seconds is None:
            return Freshness.EXPIRED
        if age_seconds <= self.max_age_seconds:
            return Freshness.FRESH
        if age_seconds <= self.max_age_seconds + self.stale_while_revalidate_seconds:
            return Freshness.STALE
        return Freshness.EXPIRED

    @property
    def cache_control(self) -> str:
        """Return the ``Cache-Control`` directive advertising this policy."""
        return (
            f"public, max-age={self.max_age_seconds}, "
            f"stale-while-revalidate={self.stale_while_revalidate_seconds}"
        )


DEFAULT_CACHE_POLICY = CachePolicy()
