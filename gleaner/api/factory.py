"""Assemble :class:`~gleaner.api.app.AppDependencies` from configuration.

Usage
-----
::

    from gleaner.api.factory import build_dependencies

    deps = build_dependencies(GleanerConfig.from_env())

"""

from __future__ import annotations

import typing as typ

from gleaner.activity.aggregator import ActivityAggregator
from gleaner.api.app import AppDependencies
from gleaner.cache.edge import EdgeCache
from gleaner.cache.scheduler import BackgroundScheduler
from gleaner.cache.store import InMemoryCacheStore
from gleaner.github.client import GitHubRestClient

if typ.TYPE_CHECKING:
    import httpx
    from sqlalchemy.ext.asyncio import AsyncEngine

    from gleaner.cache.store import CacheStore
    from gleaner.config import GleanerConfig

__all__ = ["build_dependencies"]


def _build_store(config: GleanerConfig) -> tuple[CacheStore, AsyncEngine | None]:
    if config.database_url is None:
        return InMemoryCacheStore(), None

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from gleaner.cache.sql_store import SqlCacheStore

    engine = create_async_engine(config.database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return SqlCacheStore(session_factory), engine


def build_dependencies(
    config: GleanerConfig,
    *,
    http_client: httpx.AsyncClient | None = None,
    store: CacheStore | None = None,
) -> AppDependencies:
    """Build the service's collaborators from ``config``.

    Parameters
    ----------
    config
        Loaded service configuration.
    http_client
        Optional HTTP client for upstream calls, e.g. one with a mock
        transport.
    store
        Optional cache store overriding the one selected by
        ``config.database_url``.

    Returns
    -------
    AppDependencies
        Dependencies ready for :func:`~gleaner.api.app.create_app`.

    """
    engine: AsyncEngine | None = None
    if store is None:
        store, engine = _build_store(config)

    client = GitHubRestClient(config.client_config(), http_client=http_client)
    scheduler = BackgroundScheduler()
    return AppDependencies(
        username=config.username,
        client=client,
        aggregator=ActivityAggregator(
            client, config=config.aggregator_config(), shared_cache=store
        ),
        edge_cache=EdgeCache(store, scheduler, policy=config.cache_policy()),
        scheduler=scheduler,
        engine=engine,
    )
