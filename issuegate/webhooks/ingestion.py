"""Webhook ingestion: authenticate, normalise and persist deliveries.

:class:`WebhookIngestor` runs the checks in a fixed order (signature
present, signature valid, identity headers present, kind allowed) so that
nothing is learned about an unauthenticated delivery beyond the rejection.
Accepted deliveries become :class:`~issuegate.events.models.InboundEvent`
records and are upserted by delivery id.

Whether the sender is answered before or after the store write completes
is an :class:`AcknowledgementMode` setting:

``ack_then_persist``
    The write runs as a background task; failures are logged and never
    reach the sender, who has already been answered.
``persist_then_ack``
    The write is awaited and ``StorageError`` propagates, so the HTTP layer
    can answer with a transient failure and the sender redelivers.

"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import enum
import functools
import typing as typ

from issuegate.common.time import utcnow
from issuegate.events.errors import StorageError
from issuegate.events.models import InboundEvent
from issuegate.logging import get_logger, log_warning

from .errors import AuthenticationFailure, MalformedDelivery
from .observability import WebhookEventLogger
from .payloads import PING_EVENT_KIND, SUPPORTED_EVENT_KINDS, decode_payload

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from .signature import SignatureVerifier

__all__ = [
    "DELIVERY_HEADER",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "AcknowledgementMode",
    "BackgroundPersistence",
    "EventSink",
    "IngestionOutcome",
    "WebhookDelivery",
    "WebhookIngestor",
]

logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"


class AcknowledgementMode(enum.StrEnum):
    """When the sender is answered relative to the store write."""

    ACK_THEN_PERSIST = "ack_then_persist"
    PERSIST_THEN_ACK = "persist_then_ack"


class IngestionOutcome(enum.StrEnum):
    """Result of a delivery that was not rejected."""

    ACCEPTED = "accepted"
    PERSISTED = "persisted"
    PING = "ping"


class EventSink(typ.Protocol):
    """Write side of the event store used by ingestion."""

    async def upsert(self, event: InboundEvent) -> InboundEvent:
        """Insert or replace *event* by delivery id."""
        ...


@dc.dataclass(frozen=True, slots=True)
class WebhookDelivery:
    """Transport-neutral view of one inbound delivery."""

    body: bytes
    signature: str | None = None
    event_kind: str | None = None
    delivery_id: str | None = None


class BackgroundPersistence:
    """Run store writes as tasks whose failures go to the event logger.

    References to pending tasks are kept until they finish so they cannot
    be garbage collected mid-flight, and so :meth:`drain` can wait for them
    at shutdown.
    """

    def __init__(self, event_logger: WebhookEventLogger | None = None) -> None:
        """Create an empty task set reporting through *event_logger*."""
        self._event_logger = event_logger or WebhookEventLogger()
        self._tasks: set[asyncio.Task[InboundEvent]] = set()

    @property
    def pending(self) -> int:
        """Number of writes that have not finished yet."""
        return len(self._tasks)

    def schedule(
        self, sink: EventSink, event: InboundEvent
    ) -> asyncio.Task[InboundEvent]:
        """Start ``sink.upsert(event)`` without waiting for it."""
        task = asyncio.create_task(
            sink.upsert(event), name=f"persist-webhook-{event.delivery_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(functools.partial(self._on_done, event))
        return task

    def _on_done(self, event: InboundEvent, task: asyncio.Task[InboundEvent]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            log_warning(
                logger,
                "Background write for delivery %s was cancelled",
                event.delivery_id,
            )
            return
        error = task.exception()
        if error is not None:
            self._event_logger.log_persist_failed(event, error)
            return
        self._event_logger.log_persist_completed(task.result())

    async def drain(self) -> None:
        """Wait for every pending write; failures are already logged."""
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)


class WebhookIngestor:
    """Turn verified deliveries into stored events.

    Parameters
    ----------
    verifier
        Signature verifier bound to the webhook secret.
    sink
        Event store (or any object with a compatible ``upsert``).
    mode
        Acknowledgment policy; see the module documentation.
    background
        Task set used in ``ack_then_persist`` mode.
    event_logger
        Structured event logger.
    clock
        Source of ``occurred_at`` values.

    """

    def __init__(  # noqa: PLR0913 - collaborators are injected explicitly
        self,
        verifier: SignatureVerifier,
        sink: EventSink,
        *,
        mode: AcknowledgementMode = AcknowledgementMode.ACK_THEN_PERSIST,
        background: BackgroundPersistence | None = None,
        event_logger: WebhookEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Wire the ingestor to its collaborators."""
        self._verifier = verifier
        self._sink = sink
        self._mode = mode
        self._event_logger = event_logger or WebhookEventLogger()
        self._background = background or BackgroundPersistence(self._event_logger)
        self._clock = clock

    @property
    def mode(self) -> AcknowledgementMode:
        """Configured acknowledgment policy."""
        return self._mode

    @property
    def background(self) -> BackgroundPersistence:
        """Task set holding writes that have not finished yet."""
        return self._background

    def _rejected(
        self,
        delivery: WebhookDelivery,
        error: AuthenticationFailure | MalformedDelivery,
    ) -> AuthenticationFailure | MalformedDelivery:
        self._event_logger.log_rejected(
            delivery_id=delivery.delivery_id,
            event_kind=delivery.event_kind,
            error=error,
        )
        return error

    def authenticate(self, delivery: WebhookDelivery) -> None:
        """Raise ``AuthenticationFailure`` unless the signature verifies."""
        if not delivery.signature:
            raise self._rejected(delivery, AuthenticationFailure.missing_signature())
        if not self._verifier.verify(delivery.body, delivery.signature):
            raise self._rejected(delivery, AuthenticationFailure.invalid_signature())

    def check_headers(self, delivery: WebhookDelivery) -> tuple[str, str]:
        """Return ``(event_kind, delivery_id)`` for a well-formed delivery.

        Raises
        ------
        MalformedDelivery
            If either header is missing or the kind is not supported.

        """
        event_kind = delivery.event_kind
        delivery_id = delivery.delivery_id
        if not event_kind:
            error = MalformedDelivery.missing_header(EVENT_HEADER)
            raise self._rejected(delivery, error)
        if not delivery_id:
            raise self._rejected(
                delivery, MalformedDelivery.missing_header(DELIVERY_HEADER)
            )
        if event_kind not in SUPPORTED_EVENT_KINDS:
            error = MalformedDelivery.unsupported_kind(event_kind)
            raise self._rejected(delivery, error)
        return event_kind, delivery_id

    def normalise(self, delivery: WebhookDelivery) -> InboundEvent:
        """Build the canonical event for an authenticated delivery.

        Raises
        ------
        MalformedDelivery
            If identity headers are missing, the kind is not supported, or
            the body does not decode for its kind.

        """
        event_kind, delivery_id = self.check_headers(delivery)

        try:
            raw_payload = delivery.body.decode("utf-8")
            decoded = decode_payload(event_kind, delivery.body)
        except UnicodeDecodeError as exc:
            error = MalformedDelivery.invalid_payload("body is not valid UTF-8")
            raise self._rejected(delivery, error) from exc
        except MalformedDelivery as exc:
            self._rejected(delivery, exc)
            raise

        return InboundEvent(
            delivery_id=delivery_id,
            event_kind=event_kind,
            action=decoded.action,
            subject_number=decoded.subject_number,
            occurred_at=self._clock(),
            raw_payload=raw_payload,
        )

    async def ingest(self, delivery: WebhookDelivery) -> IngestionOutcome:
        """Authenticate, normalise and persist *delivery*.

        Returns
        -------
        IngestionOutcome
            ``PING`` for connectivity tests, ``ACCEPTED`` when the write was
            scheduled in the background, ``PERSISTED`` when it completed.

        Raises
        ------
        AuthenticationFailure
            If the signature is missing or wrong.
        MalformedDelivery
            If the delivery cannot be normalised.
        StorageError
            Only in ``persist_then_ack`` mode, when the write fails.

        """
        self.authenticate(delivery)

        event_kind, delivery_id = self.check_headers(delivery)
        if event_kind == PING_EVENT_KIND:
            self._event_logger.log_ping(delivery_id=delivery_id)
            return IngestionOutcome.PING

        event = self.normalise(delivery)
        self._event_logger.log_accepted(event, mode=self._mode)

        if self._mode is AcknowledgementMode.ACK_THEN_PERSIST:
            self._background.schedule(self._sink, event)
            return IngestionOutcome.ACCEPTED

        try:
            stored = await self._sink.upsert(event)
        except StorageError as exc:
            self._event_logger.log_persist_failed(event, exc)
            raise
        self._event_logger.log_persist_completed(stored)
        return IngestionOutcome.PERSISTED
