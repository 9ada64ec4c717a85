"""Gleaner runtime entrypoint.

``gleaner.runtime:create_app`` is the Granian factory target. It loads
:class:`~gleaner.config.GleanerConfig` from the environment and builds the
full application; when ``GLEANER_DATABASE_URL`` is set the edge cache is
backed by SQL, otherwise it lives in process memory.

Server settings come from the environment:

- ``GLEANER_HOST``: Bind address (default ``0.0.0.0``)
- ``GLEANER_PORT``: Listen port (default ``8080``)
- ``GLEANER_LOG_LEVEL``: Log level (default ``INFO``)

Run the service directly with ``python -m gleaner.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from gleaner.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
    except ValueError as exc:
        log_error(logger, "Invalid GLEANER_PORT value: %r", port_str)
        raise SystemExit(1) from exc
    if not _MIN_PORT <= port <= _MAX_PORT:
        log_error(
            logger,
            "GLEANER_PORT %d outside valid range %d-%d",
            port,
            _MIN_PORT,
            _MAX_PORT,
        )
        raise SystemExit(1)
    return port


def create_app() -> falcon.asgi.App:
    """Build the application from ``GLEANER_*`` environment variables.

    Raises
    ------
    GleanerConfigError
        If the environment configuration is invalid.

    """
    from gleaner.api.app import create_app as _create_api_app
    from gleaner.api.factory import build_dependencies
    from gleaner.config import GleanerConfig

    config = GleanerConfig.from_env()
    log_info(
        logger,
        "Serving public activity for %s (cache store: %s)",
        config.username,
        "sql" if config.database_url else "memory",
    )
    return _create_api_app(build_dependencies(config))


def main() -> None:
    """Start the Gleaner server using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("GLEANER_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("GLEANER_PORT", "8080"))
    log_level_str = os.environ.get("GLEANER_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid GLEANER_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Gleaner on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "gleaner.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
