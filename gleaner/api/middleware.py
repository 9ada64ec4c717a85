"""ASGI lifespan middleware owning long-lived service resources.

On startup it prepares the SQL cache tables when a database engine is in
use. On shutdown it drains background refreshes, then releases the upstream
HTTP client and the engine.

Usage
-----
::

    lifespan = ServiceLifespan(scheduler, client=client, engine=engine)
    app = falcon.asgi.App(middleware=[lifespan])

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from gleaner.cache.sql_store import init_cache_storage
from gleaner.logging import get_logger, log_error, log_info

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from gleaner.cache.scheduler import BackgroundScheduler
    from gleaner.github.client import GitHubRestClient

__all__ = ["ServiceLifespan"]

logger = get_logger(__name__)

DRAIN_TIMEOUT_SECONDS = 10.0


class ServiceLifespan:
    """Falcon middleware handling ASGI startup and shutdown events.

    Parameters
    ----------
    scheduler
        Background scheduler drained on shutdown.
    client
        Upstream client closed after draining, when owned by the app.
    engine
        Database engine backing the SQL cache store, if any.
    drain_timeout
        Seconds to wait for outstanding refreshes before cancelling them.

    """

    def __init__(
        self,
        scheduler: BackgroundScheduler,
        *,
        client: GitHubRestClient | None = None,
        engine: AsyncEngine | None = None,
        drain_timeout: float = DRAIN_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the middleware with the resources it manages."""
        self._scheduler = scheduler
        self._client = client
        self._engine = engine
        self._drain_timeout = drain_timeout

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Create cache tables before the first request is served."""
        if self._engine is None:
            return
        try:
            await init_cache_storage(self._engine)
        except SQLAlchemyError:
            log_error(logger, "Cache storage initialisation failed", exc_info=True)
            raise
        log_info(logger, "Cache storage ready (%s)", self._engine.url.drivername)

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Drain background work, then close the client and engine."""
        log_info(
            logger,
            "Draining %d background refresh task(s)",
            self._scheduler.pending,
        )
        await self._scheduler.drain(self._drain_timeout)
        if self._client is not None:
            await self._client.aclose()
        if self._engine is not None:
            await self._engine.dispose()
