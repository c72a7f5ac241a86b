"""Persistence model for received webhook events."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


class NaiveDatetimeError(ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self) -> None:
        """Attach a fixed message for the rejected value."""
        super().__init__("webhook event timestamps must be timezone aware")


class Base(DeclarativeBase):
    """Declarative base for event store tables."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime column that always hands back aware UTC values.

    SQLite drops tzinfo on the way in, so results are re-tagged as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Convert bound values to UTC, rejecting naive datetimes."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise NaiveDatetimeError
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return result datetimes as aware UTC values."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class WebhookEventRecord(Base):
    """One row per delivery id; redelivery replaces the row in place."""

    __tablename__ = "webhook_events"
    __table_args__ = (
        Index("ix_webhook_events_recorded_at", "recorded_at"),
        Index("ix_webhook_events_kind_action", "event_kind", "action"),
    )

    delivery_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_kind: Mapped[str] = mapped_column(String(64))
    action: Mapped[str] = mapped_column(String(64))
    subject_number: Mapped[int | None] = mapped_column(Integer, default=None)
    occurred_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    raw_payload: Mapped[str] = mapped_column(Text())
    recorded_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())


async def init_event_storage(engine: AsyncEngine) -> None:
    """Create the webhook event table and indexes if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
