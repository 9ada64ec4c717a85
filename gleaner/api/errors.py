"""Falcon error handlers for the API layer.

Usage
-----
Register the handler on the Falcon app::

    from gleaner.api.errors import handle_upstream_error
    from gleaner.github.errors import GitHubRequestError

    app.add_error_handler(GitHubRequestError, handle_upstream_error)

"""

from __future__ import annotations

import typing as typ

import falcon
import msgspec

from gleaner.logging import get_logger, log_event

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from gleaner.github.errors import GitHubRequestError

__all__ = ["UPSTREAM_ERROR", "handle_upstream_error"]

logger = get_logger(__name__)

UPSTREAM_ERROR = "upstream_error"


async def handle_upstream_error(
    req: Request,
    resp: Response,
    ex: GitHubRequestError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``GitHubRequestError`` to an HTTP 502 JSON response.

    The body carries the classified error kind and a truncated upstream
    message; no stack trace reaches the client.

    Parameters
    ----------
    req
        Falcon request, used for logging the path.
    resp
        Falcon response whose status, headers and media are set.
    ex
        The upstream failure.
    _params
        URI template parameters (unused).

    """
    info = ex.info
    log_event(
        logger,
        "WARNING",
        "api.upstream_error",
        path=req.path,
        error_kind=info.kind,
        status=info.status,
    )
    resp.status = falcon.HTTP_502
    resp.set_header("Cache-Control", "no-store")
    if info.rate_limit_reset is not None:
        resp.set_header("X-RateLimit-Reset", str(info.rate_limit_reset))
    resp.media = {
        "error": UPSTREAM_ERROR,
        "message": info.message or "GitHub API request failed",
        "errorInfo": msgspec.to_builtins(info),
    }
