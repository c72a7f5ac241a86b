"""Structured log events for webhook ingestion.

Every delivery produces exactly one of the ``webhook.delivery.*`` events.
Persisted deliveries additionally produce ``webhook.persist.completed`` or
``webhook.persist.failed`` once the store write finishes, which in the
default acknowledgment mode happens after the sender has been answered.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from issuegate.events.errors import LifecycleError, StorageError
from issuegate.logging import get_logger, log_error, log_info, log_warning

if typ.TYPE_CHECKING:
    from issuegate.events.models import InboundEvent

logger = get_logger(__name__)


class WebhookEventType(enum.StrEnum):
    """Structured log event types for webhook ingestion."""

    DELIVERY_ACCEPTED = "webhook.delivery.accepted"
    DELIVERY_REJECTED = "webhook.delivery.rejected"
    DELIVERY_PING = "webhook.delivery.ping"
    PERSIST_COMPLETED = "webhook.persist.completed"
    PERSIST_FAILED = "webhook.persist.failed"


class ErrorCategory(enum.StrEnum):
    """Alert routing categories for persistence failures."""

    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    LIFECYCLE = "lifecycle"
    UNKNOWN = "unknown"


_CAUSE_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Classify a persistence failure for alerting.

    ``StorageError`` is classified by the driver exception it wraps.
    """
    if isinstance(exc, LifecycleError):
        return ErrorCategory.LIFECYCLE

    target = exc.__cause__ if isinstance(exc, StorageError) else exc
    if target is None:
        return ErrorCategory.DATABASE_ERROR

    for exc_type, category in _CAUSE_CATEGORY_MAP:
        if isinstance(target, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class WebhookEventLogger:
    """Emit webhook ingestion events via femtologging."""

    def log_accepted(self, event: InboundEvent, *, mode: str) -> None:
        """Log a delivery that passed every check and was handed to the store."""
        log_info(
            logger,
            "[%s] delivery_id=%s event_kind=%s action=%s subject_number=%s "
            "ack_mode=%s",
            WebhookEventType.DELIVERY_ACCEPTED,
            event.delivery_id,
            event.event_kind,
            event.action,
            event.subject_number,
            mode,
        )

    def log_rejected(
        self,
        *,
        delivery_id: str | None,
        event_kind: str | None,
        error: Exception,
    ) -> None:
        """Log a delivery refused before reaching the store."""
        log_warning(
            logger,
            "[%s] delivery_id=%s event_kind=%s error_type=%s reason=%s",
            WebhookEventType.DELIVERY_REJECTED,
            delivery_id,
            event_kind,
            type(error).__name__,
            str(error),
        )

    def log_ping(self, *, delivery_id: str | None) -> None:
        """Log a connectivity test delivery; these are never stored."""
        log_info(
            logger,
            "[%s] delivery_id=%s",
            WebhookEventType.DELIVERY_PING,
            delivery_id,
        )

    def log_persist_completed(self, event: InboundEvent) -> None:
        """Log a finished store write."""
        recorded_at = event.recorded_at.isoformat() if event.recorded_at else None
        log_info(
            logger,
            "[%s] delivery_id=%s recorded_at=%s",
            WebhookEventType.PERSIST_COMPLETED,
            event.delivery_id,
            recorded_at,
        )

    def log_persist_failed(self, event: InboundEvent, error: BaseException) -> None:
        """Log a failed store write with its category and traceback."""
        log_error(
            logger,
            "[%s] delivery_id=%s event_kind=%s action=%s error_type=%s "
            "error_category=%s error_message=%s",
            WebhookEventType.PERSIST_FAILED,
            event.delivery_id,
            event.event_kind,
            event.action,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
