"""Domain exceptions and Falcon error handlers for the API layer.

Handlers translate errors raised anywhere below a resource (validation,
webhook ingestion, the event store, the GitHub client) into JSON responses
of the form ``{"title": ..., "description": ...}``.

Usage
-----
Register every handler on the Falcon app::

    from issuegate.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from issuegate.events.errors import StorageError
from issuegate.github.errors import GitHubAPIError, RateLimitExceededError
from issuegate.logging import get_logger, log_exception
from issuegate.webhooks.errors import AuthenticationFailure, MalformedDelivery

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = [
    "ClientRateLimitedError",
    "EventNotFoundError",
    "InvalidInputError",
    "handle_authentication_failure",
    "handle_client_rate_limited",
    "handle_event_not_found",
    "handle_github_error",
    "handle_invalid_input",
    "handle_malformed_delivery",
    "handle_rate_limited",
    "handle_storage_error",
    "register_error_handlers",
]

logger = get_logger(__name__)

_PASSTHROUGH_STATUSES: dict[int, tuple[str, str]] = {
    401: (falcon.HTTP_401, "Unauthorized"),
    403: (falcon.HTTP_403, "Forbidden"),
    404: (falcon.HTTP_404, "Not found"),
    422: (falcon.HTTP_422, "Unprocessable entity"),
}


class ClientRateLimitedError(Exception):
    """Raised when a client exceeds the inbound request rate.

    Attributes
    ----------
    retry_after
        Seconds until the client's window resets.

    """

    def __init__(self, retry_after: int) -> None:
        """Record how long the client must wait."""
        self.retry_after = retry_after
        super().__init__(
            f"Request rate exceeded. Retry after {retry_after} seconds"
        )


class EventNotFoundError(Exception):
    """Raised when no stored event has the requested delivery id.

    Attributes
    ----------
    delivery_id
        The delivery id that was looked up.

    """

    def __init__(self, delivery_id: str) -> None:
        """Initialize with the delivery id that was not found."""
        self.delivery_id = delivery_id
        super().__init__(f"No event with delivery id '{delivery_id}' exists.")


class InvalidInputError(Exception):
    """Raised for client validation errors that should map to HTTP 400.

    Use this instead of ``ValueError`` so that only *intentional*
    validation failures are surfaced to the caller, while genuine
    programmer mistakes still propagate as unhandled 500s.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the input field that failed validation.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialize with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        message = f"{field}: {reason}" if field is not None else reason
        super().__init__(message)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to an HTTP 400 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The validation exception containing reason and optional field.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {
        "title": "Invalid input",
        "description": ex.reason,
    }
    if ex.field is not None:
        media["field"] = ex.field
    resp.media = media


async def handle_event_not_found(
    _req: Request,
    resp: Response,
    ex: EventNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``EventNotFoundError`` to an HTTP 404 JSON response."""
    resp.status = falcon.HTTP_404
    resp.media = {"title": "Event not found", "description": str(ex)}


async def handle_authentication_failure(
    _req: Request,
    resp: Response,
    ex: AuthenticationFailure,
    _params: dict[str, typ.Any],
) -> None:
    """Map a rejected webhook signature to HTTP 401."""
    resp.status = falcon.HTTP_401
    resp.media = {"title": "Unauthorized", "description": str(ex)}


async def handle_malformed_delivery(
    _req: Request,
    resp: Response,
    ex: MalformedDelivery,
    _params: dict[str, typ.Any],
) -> None:
    """Map an unusable webhook delivery to HTTP 400."""
    resp.status = falcon.HTTP_400
    resp.media = {"title": "Invalid webhook delivery", "description": str(ex)}


async def handle_storage_error(
    req: Request,
    resp: Response,
    ex: StorageError,
    _params: dict[str, typ.Any],
) -> None:
    """Map an event store failure to HTTP 503 so callers retry later.

    The underlying driver error is logged, not returned.
    """
    log_exception(logger, f"Event store failure on {req.method} {req.path}", ex)
    resp.status = falcon.HTTP_503
    resp.media = {
        "title": "Service unavailable",
        "description": "The event store is temporarily unavailable.",
    }


async def handle_rate_limited(
    _req: Request,
    resp: Response,
    ex: RateLimitExceededError,
    _params: dict[str, typ.Any],
) -> None:
    """Map an exhausted GitHub rate limit to HTTP 429 with ``Retry-After``."""
    resp.status = falcon.HTTP_429
    if ex.retry_after is not None:
        resp.set_header("Retry-After", str(ex.retry_after))
    resp.media = {"title": "Too many requests", "description": str(ex)}


async def handle_client_rate_limited(
    _req: Request,
    resp: Response,
    ex: ClientRateLimitedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map an over-limit client to HTTP 429 with ``Retry-After``."""
    resp.status = falcon.HTTP_429
    resp.set_header("Retry-After", str(ex.retry_after))
    resp.media = {"title": "Too many requests", "description": str(ex)}


async def handle_github_error(
    _req: Request,
    resp: Response,
    ex: GitHubAPIError,
    _params: dict[str, typ.Any],
) -> None:
    """Map a GitHub failure to an HTTP response.

    Client errors that are meaningful to the caller (401, 403, 404, 422)
    keep their status. Everything else, including timeouts and network
    errors, becomes 502.
    """
    status, title = _PASSTHROUGH_STATUSES.get(
        ex.status_code or 0, (falcon.HTTP_502, "Bad gateway")
    )
    resp.status = status
    resp.media = {"title": title, "description": str(ex)}


def register_error_handlers(app: App) -> None:
    """Attach every API error handler to *app*.

    Falcon picks the handler registered for the most specific class, so
    ``RateLimitExceededError`` is not swallowed by the ``GitHubAPIError``
    handler.
    """
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(EventNotFoundError, handle_event_not_found)
    app.add_error_handler(AuthenticationFailure, handle_authentication_failure)
    app.add_error_handler(MalformedDelivery, handle_malformed_delivery)
    app.add_error_handler(StorageError, handle_storage_error)
    app.add_error_handler(GitHubAPIError, handle_github_error)
    app.add_error_handler(RateLimitExceededError, handle_rate_limited)
    app.add_error_handler(ClientRateLimitedError, handle_client_rate_limited)
