"""Canonical webhook event record."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt


@dc.dataclass(frozen=True, slots=True)
class InboundEvent:
    """One webhook delivery, normalised for storage.

    Attributes
    ----------
    delivery_id
        Sender-assigned identity of the delivery attempt; the dedupe key.
    event_kind
        Webhook category, e.g. ``issues`` or ``issue_comment``.
    action
        Action within the kind, e.g. ``opened`` or ``created``.
    subject_number
        Issue number the event refers to, when the payload carries one.
    occurred_at
        Receiver-side ingestion instant (UTC). Sender timestamps are not
        trusted.
    raw_payload
        The request body exactly as received.
    recorded_at
        Store-assigned write instant; ``None`` until the event is stored.

    """

    delivery_id: str
    event_kind: str
    action: str
    occurred_at: dt.datetime
    raw_payload: str
    subject_number: int | None = None
    recorded_at: dt.datetime | None = None
