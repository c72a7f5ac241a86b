"""Webhook delivery resource.

``POST /webhook`` hands the raw body and the GitHub headers to the
:class:`~issuegate.webhooks.ingestion.WebhookIngestor`. Rejections surface as
``AuthenticationFailure`` (401) or ``MalformedDelivery`` (400) through the
registered error handlers; every accepted delivery, pings included, is
answered with 204.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from issuegate.webhooks.ingestion import (
    DELIVERY_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    WebhookDelivery,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from issuegate.webhooks.ingestion import WebhookIngestor

__all__ = ["WebhookResource"]


class WebhookResource:
    """Receive GitHub webhook deliveries."""

    def __init__(self, ingestor: WebhookIngestor) -> None:
        """Bind the resource to the ingestion pipeline."""
        self._ingestor = ingestor

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /webhook requests.

        The body is read as raw bytes because the signature covers the
        exact bytes GitHub sent.
        """
        body = await req.stream.read()
        delivery = WebhookDelivery(
            body=body,
            signature=req.get_header(SIGNATURE_HEADER),
            event_kind=req.get_header(EVENT_HEADER),
            delivery_id=req.get_header(DELIVERY_HEADER),
        )
        await self._ingestor.ingest(delivery)
        resp.status = HTTPStatus.NO_CONTENT
