"""Service configuration loaded from ``GLEANER_*`` environment variables.

Usage
-----
>>> import os
>>> os.environ["GLEANER_GITHUB_USERNAME"] = "octocat"
>>> config = GleanerConfig.from_env()
>>> config.activity_limit
30

"""

from __future__ import annotations

import dataclasses
import os

from gleaner.activity.aggregator import AggregatorConfig
from gleaner.cache.policy import CachePolicy
from gleaner.github.client import GitHubClientConfig

_DEFAULT_USER_AGENT = "gleaner/0.1"
_DEFAULT_ACTIVITY_LIMIT = 30
_DEFAULT_MAX_PAGES = 5
_DEFAULT_CACHE_MAX_AGE_S = 60
_DEFAULT_CACHE_SWR_S = 300


class GleanerConfigError(ValueError):
    """Raised when the environment holds an unusable configuration."""

    @classmethod
    def missing_username(cls) -> GleanerConfigError:
        """Return an error for an absent or blank target username."""
        return cls("GLEANER_GITHUB_USERNAME must be set to a GitHub login")

    @classmethod
    def not_an_integer(cls, env_var: str, raw: str) -> GleanerConfigError:
        """Return an error for a value that does not parse as an integer."""
        return cls(f"{env_var} must be an integer, got: {raw!r}")

    @classmethod
    def below_minimum(
        cls, env_var: str, value: int, minimum: int
    ) -> GleanerConfigError:
        """Return an error for an integer under its allowed minimum."""
        return cls(f"{env_var} must be at least {minimum}, got: {value}")


@dataclasses.dataclass(frozen=True, slots=True)
class GleanerConfig:
    """Configuration for the activity service.

    Attributes
    ----------
    username
        GitHub login whose public activity is served.
    token
        Optional server-side token raising the upstream rate limit.
    user_agent
        ``User-Agent`` sent upstream.
    activity_limit
        Default number of items per feed.
    max_pages
        Page budget for full aggregation runs.
    cache_max_age_s
        Seconds a cached response stays fresh.
    cache_swr_s
        Seconds past ``cache_max_age_s`` during which stale responses are
        served while refreshing.
    database_url
        SQLAlchemy async URL selecting the SQL cache store; ``None`` keeps
        the cache in process memory.

    """

    username: str
    token: str | None = None
    user_agent: str = _DEFAULT_USER_AGENT
    activity_limit: int = _DEFAULT_ACTIVITY_LIMIT
    max_pages: int = _DEFAULT_MAX_PAGES
    cache_max_age_s: int = _DEFAULT_CACHE_MAX_AGE_S
    cache_swr_s: int = _DEFAULT_CACHE_SWR_S
    database_url: str | None = None

    @staticmethod
    def _parse_int(env_var: str, default: int, *, minimum: int) -> int:
        """Read an integer env var, falling back to ``default`` when blank."""
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise GleanerConfigError.not_an_integer(env_var, raw) from exc
        if value < minimum:
            raise GleanerConfigError.below_minimum(env_var, value, minimum)
        return value

    @staticmethod
    def _optional(env_var: str) -> str | None:
        raw = os.environ.get(env_var, "").strip()
        return raw or None

    @classmethod
    def from_env(cls) -> GleanerConfig:
        """Create configuration from environment variables.

        Reads ``GLEANER_GITHUB_USERNAME`` (required), ``GLEANER_GITHUB_TOKEN``,
        ``GLEANER_USER_AGENT``, ``GLEANER_ACTIVITY_LIMIT``,
        ``GLEANER_MAX_PAGES``, ``GLEANER_CACHE_MAX_AGE_S``,
        ``GLEANER_CACHE_SWR_S`` and ``GLEANER_DATABASE_URL``.

        Raises
        ------
        GleanerConfigError
            If the username is missing or a numeric value is invalid.

        """
        username = cls._optional("GLEANER_GITHUB_USERNAME")
        if username is None:
            raise GleanerConfigError.missing_username()

        return cls(
            username=username,
            token=cls._optional("GLEANER_GITHUB_TOKEN"),
            user_agent=cls._optional("GLEANER_USER_AGENT") or _DEFAULT_USER_AGENT,
            activity_limit=cls._parse_int(
                "GLEANER_ACTIVITY_LIMIT", _DEFAULT_ACTIVITY_LIMIT, minimum=1
            ),
            max_pages=cls._parse_int(
                "GLEANER_MAX_PAGES", _DEFAULT_MAX_PAGES, minimum=1
            ),
            cache_max_age_s=cls._parse_int(
                "GLEANER_CACHE_MAX_AGE_S", _DEFAULT_CACHE_MAX_AGE_S, minimum=0
            ),
            cache_swr_s=cls._parse_int(
                "GLEANER_CACHE_SWR_S", _DEFAULT_CACHE_SWR_S, minimum=0
            ),
            database_url=cls._optional("GLEANER_DATABASE_URL"),
        )

    def client_config(self) -> GitHubClientConfig:
        """Return the upstream client configuration."""
        return GitHubClientConfig(token=self.token, user_agent=self.user_agent)

    def aggregator_config(self) -> AggregatorConfig:
        """Return the aggregation budgets (clamped to supported ranges)."""
        return AggregatorConfig(limit=self.activity_limit, max_pages=self.max_pages)

    def cache_policy(self) -> CachePolicy:
        """Return the edge-cache freshness policy."""
        return CachePolicy(
            max_age_seconds=self.cache_max_age_s,
            stale_while_revalidate_seconds=self.cache_swr_s,
        )
