"""Edge cache: freshness policy, stores, refresh scheduling and serving."""

from __future__ import annotations

from .edge import CacheEntry, CacheOutcome, CacheState, EdgeCache
from .policy import DEFAULT_CACHE_POLICY, CachePolicy, Freshness
from .scheduler import BackgroundScheduler
from .store import CacheStore, InMemoryCacheStore

__all__ = [
    "DEFAULT_CACHE_POLICY",
    "BackgroundScheduler",
    "CacheEntry",
    "CacheOutcome",
    "CachePolicy",
    "CacheState",
    "CacheStore",
    "EdgeCache",
    "Freshness",
    "InMemoryCacheStore",
]
