"""Clock helpers shared by the event store and the API layer."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return the current instant as an aware UTC datetime."""
    return dt.datetime.now(dt.UTC)


def isoformat_utc(value: dt.datetime) -> str:
    """Render an aware datetime as an ISO-8601 string in UTC."""
    return value.astimezone(dt.UTC).isoformat()
