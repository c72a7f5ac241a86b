"""Health probe resources for liveness, readiness and status checks.

These resources are stateless apart from the process start time and do not
touch the event store. They are always registered.

Usage
-----
Register health endpoints on the Falcon app::

    from issuegate.api.health.resources import (
        HealthResource,
        HealthzResource,
        ReadyResource,
    )

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource())
    app.add_route("/healthz", HealthzResource())

"""

from __future__ import annotations

import time
import typing as typ
from http import HTTPStatus

from issuegate.common.time import isoformat_utc, utcnow

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "HealthzResource", "ReadyResource"]


class HealthResource:
    """Liveness probe resource returning ``{"status": "ok"}``.

    Always responds with HTTP 200 to indicate the process is alive.
    No parameters or request body are expected.

    """

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe resource returning ``{"status": "ready"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests."""
        resp.media = {"status": "ready"}
        resp.status = HTTPStatus.OK


class HealthzResource:
    """Status resource reporting the current time and process uptime.

    Parameters
    ----------
    clock
        Source of the reported timestamp.
    monotonic
        Monotonic time source used to measure uptime; uptime counts from
        the moment the resource is created.

    """

    def __init__(
        self,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        monotonic: cabc.Callable[[], float] = time.monotonic,
    ) -> None:
        """Record the start instant used for uptime."""
        self._clock = clock
        self._monotonic = monotonic
        self._started = monotonic()

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /healthz requests."""
        resp.media = {
            "status": "healthy",
            "timestamp": isoformat_utc(self._clock()),
            "uptime": int(self._monotonic() - self._started),
        }
        resp.status = HTTPStatus.OK
