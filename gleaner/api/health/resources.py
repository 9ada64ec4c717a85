"""Liveness and readiness probes.

Usage
-----
::

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(scheduler))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gleaner.cache.scheduler import BackgroundScheduler

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe; always ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe.

    Reports ``draining`` with HTTP 503 once shutdown has started, so load
    balancers stop routing requests whose background refreshes would be
    rejected.
    """

    def __init__(self, scheduler: BackgroundScheduler | None = None) -> None:
        """Watch ``scheduler`` for shutdown, when one is configured."""
        self._scheduler = scheduler

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        if self._scheduler is not None and not self._scheduler.accepting:
            resp.media = {"status": "draining"}
            resp.status = HTTPStatus.SERVICE_UNAVAILABLE
            return
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK
