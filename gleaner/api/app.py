"""Application factory for the Gleaner Falcon ASGI application.

Usage
-----
Create a health-only app::

    app = create_app()

Create the full service from configuration::

    from gleaner.api.factory import build_dependencies

    app = create_app(build_dependencies(GleanerConfig.from_env()))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from gleaner.api.activity.resources import (
    ActivityPreviewResource,
    ActivityResource,
    CachedResourceDependencies,
    ProfileResource,
)
from gleaner.api.errors import handle_upstream_error
from gleaner.api.health.resources import HealthResource, ReadyResource
from gleaner.api.middleware import ServiceLifespan
from gleaner.github.errors import GitHubRequestError

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from gleaner.activity.aggregator import ActivityAggregator
    from gleaner.cache.edge import EdgeCache
    from gleaner.cache.scheduler import BackgroundScheduler
    from gleaner.github.client import GitHubRestClient

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    username
        GitHub login whose activity is served.
    client
        Upstream client, closed on shutdown.
    aggregator
        Builds activity feeds.
    edge_cache
        Serves cached responses and schedules refreshes.
    scheduler
        Owner of background refreshes, drained on shutdown.
    engine
        Engine backing the SQL cache store, when one is configured.

    """

    username: str
    client: GitHubRestClient
    aggregator: ActivityAggregator
    edge_cache: EdgeCache
    scheduler: BackgroundScheduler
    engine: AsyncEngine | None = None


def create_app(dependencies: AppDependencies | None = None) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Without dependencies only ``/health`` and ``/ready`` are registered.
    With them the app also serves ``/api/activity.json``,
    ``/api/activity.preview.json`` and ``/api/profile.json`` and manages
    resource lifetimes through :class:`ServiceLifespan`.

    Parameters
    ----------
    dependencies
        Optional application dependencies.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = []
    if dependencies is not None:
        middleware.append(
            ServiceLifespan(
                dependencies.scheduler,
                client=dependencies.client,
                engine=dependencies.engine,
            )
        )

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route(
        "/ready",
        ReadyResource(dependencies.scheduler if dependencies is not None else None),
    )

    if dependencies is not None:
        resource_deps = CachedResourceDependencies(
            username=dependencies.username,
            client=dependencies.client,
            aggregator=dependencies.aggregator,
            edge_cache=dependencies.edge_cache,
        )
        for resource_type in (
            ActivityResource,
            ActivityPreviewResource,
            ProfileResource,
        ):
            app.add_route(resource_type.endpoint, resource_type(resource_deps))

    app.add_error_handler(GitHubRequestError, handle_upstream_error)

    return app
