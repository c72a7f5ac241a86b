"""Cross-cutting HTTP middleware for the issuegate Falcon application.

``SecurityHeaders`` stamps conservative browser security headers on every
response. ``ClientRateLimit`` throttles inbound requests per client address
using a fixed window from the ``limits`` library. CORS is handled by
Falcon's own ``CORSMiddleware`` (see :func:`cors_middleware`).

Usage
-----
Register the middleware when creating the Falcon app::

    app = falcon.asgi.App(
        middleware=[
            cors_middleware(),
            SecurityHeaders(),
            ClientRateLimit("100/minute"),
        ]
    )

"""

from __future__ import annotations

import math
import time
import typing as typ

import falcon
from limits import parse
from limits.aio.storage import MemoryStorage
from limits.aio.strategies import FixedWindowRateLimiter

from issuegate.api.errors import ClientRateLimitedError
from issuegate.logging import get_logger, log_warning

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from falcon.asgi import Request, Response

__all__ = [
    "DEFAULT_CLIENT_RATE_LIMIT",
    "EXPOSED_HEADERS",
    "SECURITY_HEADERS",
    "UNTHROTTLED_PATHS",
    "ClientRateLimit",
    "SecurityHeaders",
    "cors_middleware",
]

logger = get_logger(__name__)

DEFAULT_CLIENT_RATE_LIMIT = "100/minute"

# Probes must keep answering while a client is being throttled.
UNTHROTTLED_PATHS = frozenset({"/health", "/ready", "/healthz"})

# Headers browsers may read on cross-origin responses.
EXPOSED_HEADERS = (
    "Link",
    "Location",
    "Retry-After",
    "X-RateLimit-Limit",
    "X-RateLimit-Remaining",
    "X-RateLimit-Reset",
    "X-RateLimit-Used",
    "X-Total-Count",
)

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}


def cors_middleware() -> falcon.CORSMiddleware:
    """Return Falcon's CORS middleware allowing any origin.

    Rate-limit, pagination and ``Location`` headers are exposed so browser
    clients can page through issues and back off when throttled.
    """
    return falcon.CORSMiddleware(
        allow_origins="*", expose_headers=list(EXPOSED_HEADERS)
    )


class SecurityHeaders:
    """Falcon middleware adding :data:`SECURITY_HEADERS` to every response."""

    def __init__(self, headers: cabc.Mapping[str, str] | None = None) -> None:
        """Use *headers* instead of the defaults when given."""
        self._headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def process_response(
        self,
        _req: Request,
        resp: Response,
        _resource: object,
        _req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature requires positional bool
    ) -> None:
        """Set the security headers, including on error responses."""
        resp.set_headers(self._headers)


class ClientRateLimit:
    """Falcon middleware limiting requests per client address.

    Parameters
    ----------
    limit
        Rate expression understood by :func:`limits.parse`, for example
        ``"100/minute"``.
    clock
        Source of the current epoch time, used to compute ``Retry-After``.

    Raises
    ------
    ValueError
        If *limit* is not a valid rate expression.

    """

    def __init__(
        self,
        limit: str = DEFAULT_CLIENT_RATE_LIMIT,
        *,
        clock: cabc.Callable[[], float] = time.time,
    ) -> None:
        """Parse *limit* and create an in-memory fixed-window limiter."""
        self._item = parse(limit)
        self._limiter = FixedWindowRateLimiter(MemoryStorage())
        self._clock = clock

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Count the request against its client and reject it once over."""
        if req.method == "OPTIONS" or req.path in UNTHROTTLED_PATHS:
            return

        client = req.remote_addr
        if await self._limiter.hit(self._item, client):
            return

        stats = await self._limiter.get_window_stats(self._item, client)
        retry_after = max(1, math.ceil(stats.reset_time - self._clock()))
        log_warning(
            logger,
            "Client %s exceeded %s on %s %s",
            client,
            self._item,
            req.method,
            req.path,
        )
        raise ClientRateLimitedError(retry_after)
