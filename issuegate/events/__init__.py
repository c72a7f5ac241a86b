"""Durable, deduplicating storage for received webhook events."""

from __future__ import annotations

from .errors import LifecycleError, StorageError
from .models import InboundEvent
from .storage import WebhookEventRecord, init_event_storage
from .store import EventStore, StoreState

__all__ = [
    "EventStore",
    "InboundEvent",
    "LifecycleError",
    "StorageError",
    "StoreState",
    "WebhookEventRecord",
    "init_event_storage",
]
