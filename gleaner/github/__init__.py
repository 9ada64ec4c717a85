"""GitHub REST client, public-event pagination and enrichment lookups."""

from __future__ import annotations

from .client import (
    Err,
    GitHubClientConfig,
    GitHubResponseMeta,
    GitHubRestClient,
    GitHubResult,
    Ok,
    UpstreamClient,
)
from .enrichment import ConcurrencyLimiter, ForkResolver, PullRequestResolver
from .errors import (
    GitHubConfigError,
    GitHubErrorInfo,
    GitHubErrorKind,
    GitHubRequestError,
)
from .events import EventSource, EventsPage
from .ratelimit import RateLimitInfo, RateLimitTracker
from .retry import RetryPolicy

__all__ = [
    "ConcurrencyLimiter",
    "Err",
    "EventSource",
    "EventsPage",
    "ForkResolver",
    "GitHubClientConfig",
    "GitHubConfigError",
    "GitHubErrorInfo",
    "GitHubErrorKind",
    "GitHubRequestError",
    "GitHubResponseMeta",
    "GitHubRestClient",
    "GitHubResult",
    "Ok",
    "PullRequestResolver",
    "RateLimitInfo",
    "RateLimitTracker",
    "RetryPolicy",
    "UpstreamClient",
]
