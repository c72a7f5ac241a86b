"""Event query resources.

``GET /events`` lists the most recently recorded webhook events and
``GET /events/{delivery_id}`` returns one event including its raw body.

Usage
-----
Register the resources on the Falcon app::

    app.add_route("/events", EventCollectionResource(store))
    app.add_route("/events/{delivery_id}", EventResource(store))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from issuegate.api.errors import EventNotFoundError
from issuegate.api.validation import parse_event_limit
from issuegate.common.time import isoformat_utc

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from issuegate.events.models import InboundEvent
    from issuegate.events.store import EventStore

__all__ = ["EventCollectionResource", "EventResource", "serialize_event"]


def serialize_event(
    event: InboundEvent, *, include_payload: bool = False
) -> dict[str, typ.Any]:
    """Serialize a stored event to a JSON-compatible dict.

    Parameters
    ----------
    event
        Event as returned by the store.
    include_payload
        Whether to add the verbatim delivery body under ``payload``.

    Returns
    -------
    dict[str, Any]
        ``id``, ``event``, ``action``, ``timestamp`` and ``recorded_at``,
        plus ``issue_number`` when the event has one.

    """
    body: dict[str, typ.Any] = {
        "id": event.delivery_id,
        "event": event.event_kind,
        "action": event.action,
        "timestamp": isoformat_utc(event.occurred_at),
        "recorded_at": (
            None if event.recorded_at is None else isoformat_utc(event.recorded_at)
        ),
    }
    if event.subject_number is not None:
        body["issue_number"] = event.subject_number
    if include_payload:
        body["payload"] = event.raw_payload
    return body


class EventCollectionResource:
    """``GET /events?limit=N``: newest events first, 50 by default."""

    def __init__(self, store: EventStore) -> None:
        """Bind the resource to the event store."""
        self._store = store

    async def on_get(self, req: Request, resp: Response) -> None:
        """Handle GET /events requests."""
        limit = parse_event_limit(req.get_param("limit"))
        events = await self._store.list_recent(limit)
        resp.media = [serialize_event(event) for event in events]
        resp.status = HTTPStatus.OK


class EventResource:
    """``GET /events/{delivery_id}``: one event with its raw payload."""

    def __init__(self, store: EventStore) -> None:
        """Bind the resource to the event store."""
        self._store = store

    async def on_get(
        self, _req: Request, resp: Response, *, delivery_id: str
    ) -> None:
        """Handle GET /events/{delivery_id} requests.

        Raises
        ------
        EventNotFoundError
            If nothing is stored under *delivery_id*.

        """
        event = await self._store.get_by_id(delivery_id)
        if event is None:
            raise EventNotFoundError(delivery_id)
        resp.media = serialize_event(event, include_payload=True)
        resp.status = HTTPStatus.OK
