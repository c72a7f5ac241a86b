"""Webhook ingestion: signature checks, payload decoding and persistence."""

from __future__ import annotations

from .errors import AuthenticationFailure, MalformedDelivery, MissingWebhookSecretError
from .ingestion import (
    DELIVERY_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    AcknowledgementMode,
    BackgroundPersistence,
    IngestionOutcome,
    WebhookDelivery,
    WebhookIngestor,
)
from .observability import ErrorCategory, WebhookEventLogger, categorize_error
from .payloads import SUPPORTED_EVENT_KINDS, DecodedPayload, decode_payload
from .signature import SignatureVerifier

__all__ = [
    "DELIVERY_HEADER",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "SUPPORTED_EVENT_KINDS",
    "AcknowledgementMode",
    "AuthenticationFailure",
    "BackgroundPersistence",
    "DecodedPayload",
    "ErrorCategory",
    "IngestionOutcome",
    "MalformedDelivery",
    "MissingWebhookSecretError",
    "SignatureVerifier",
    "WebhookDelivery",
    "WebhookEventLogger",
    "WebhookIngestor",
    "categorize_error",
    "decode_payload",
]
