"""Deduplicating store for received webhook events.

``EventStore`` keeps at most one row per delivery id. Writes are a single
``INSERT ... ON CONFLICT (delivery_id) DO UPDATE`` statement, so concurrent
redeliveries of the same id are serialised by the database and the final row
is always one complete event, never a mix of two.

Usage
-----
Scoped use::

    async with EventStore.connect("sqlite+aiosqlite:///events.db") as store:
        await store.upsert(event)
        recent = await store.list_recent(20)

Explicit lifecycle (the runtime opens on ASGI startup and closes on
shutdown)::

    store = EventStore("sqlite+aiosqlite:///events.db")
    await store.open()
    ...
    await store.close()

"""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses as dc
import enum
import typing as typ
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from issuegate.common.time import utcnow
from issuegate.logging import get_logger, log_info

from .errors import LifecycleError, StorageError
from .models import InboundEvent
from .storage import WebhookEventRecord, init_event_storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

__all__ = ["EventStore", "StoreState"]

logger = get_logger(__name__)

_UPSERT_INSERTS: dict[str, cabc.Callable[..., typ.Any]] = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

_REPLACED_COLUMNS = (
    "event_kind",
    "action",
    "subject_number",
    "occurred_at",
    "raw_payload",
    "recorded_at",
)


class StoreState(enum.StrEnum):
    """Lifecycle of an :class:`EventStore`; transitions only move forward."""

    UNOPENED = "unopened"
    OPEN = "open"
    CLOSED = "closed"


def _ensure_sqlite_directory(database_url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return
    Path(database).parent.mkdir(parents=True, exist_ok=True)


def _to_event(record: WebhookEventRecord) -> InboundEvent:
    return InboundEvent(
        delivery_id=record.delivery_id,
        event_kind=record.event_kind,
        action=record.action,
        subject_number=record.subject_number,
        occurred_at=record.occurred_at,
        raw_payload=record.raw_payload,
        recorded_at=record.recorded_at,
    )


class EventStore:
    """Durable, idempotent store of :class:`InboundEvent` records.

    Parameters
    ----------
    database_url
        SQLAlchemy async URL. The store creates and disposes its own engine.
    engine
        Pre-built engine to use instead of ``database_url``; the caller keeps
        ownership and the store never disposes it.
    clock
        Source of ``recorded_at`` values.

    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: AsyncEngine | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the store without touching the database."""
        if (database_url is None) == (engine is None):
            msg = "provide exactly one of database_url or engine"
            raise ValueError(msg)
        self._database_url = database_url
        self._engine = engine
        self._owns_engine = engine is None
        self._clock = clock
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._insert: cabc.Callable[..., typ.Any] | None = None
        self._state = StoreState.UNOPENED
        self._inflight = 0
        self._drained: asyncio.Event | None = None

    @classmethod
    @contextlib.asynccontextmanager
    async def connect(
        cls,
        database_url: str,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> cabc.AsyncIterator[EventStore]:
        """Open a store for the duration of an ``async with`` block."""
        store = cls(database_url, clock=clock)
        await store.open()
        try:
            yield store
        finally:
            await store.close()

    @property
    def state(self) -> StoreState:
        """Current lifecycle state."""
        return self._state

    async def open(self) -> None:
        """Acquire the engine and guarantee the schema exists.

        Raises
        ------
        LifecycleError
            If the store was already opened or closed.
        StorageError
            If the schema cannot be created. The store is then closed for
            good; there is no degraded mode.

        """
        if self._state is not StoreState.UNOPENED:
            raise LifecycleError("open", self._state)

        try:
            engine = self._engine
            if engine is None:
                database_url = typ.cast("str", self._database_url)
                _ensure_sqlite_directory(database_url)
                engine = create_async_engine(database_url)
                self._engine = engine
            dialect = engine.dialect.name
            insert = _UPSERT_INSERTS.get(dialect)
            if insert is None:
                raise StorageError.unsupported_dialect(dialect)
            await init_event_storage(engine)
        except (SQLAlchemyError, OSError) as exc:
            await self._abandon()
            raise StorageError.schema_creation_failed() from exc
        except StorageError:
            await self._abandon()
            raise

        self._insert = insert
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._state = StoreState.OPEN
        log_info(logger, "Event store opened (dialect=%s)", dialect)

    async def _abandon(self) -> None:
        self._state = StoreState.CLOSED
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()

    async def close(self) -> None:
        """Release the engine once in-flight operations have finished.

        New operations are rejected as soon as ``close`` is called. Closing
        an already closed store is a no-op.
        """
        if self._state is StoreState.CLOSED:
            return
        self._state = StoreState.CLOSED

        if self._inflight:
            self._drained = asyncio.Event()
            await self._drained.wait()

        self._session_factory = None
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()
        log_info(logger, "Event store closed")

    @contextlib.asynccontextmanager
    async def _operation(
        self, name: str
    ) -> cabc.AsyncIterator[async_sessionmaker[AsyncSession]]:
        """Track an operation so ``close`` can wait for it."""
        if self._state is not StoreState.OPEN or self._session_factory is None:
            raise LifecycleError(name, self._state)
        self._inflight += 1
        try:
            yield self._session_factory
        finally:
            self._inflight -= 1
            if self._inflight == 0 and self._drained is not None:
                self._drained.set()

    async def upsert(self, event: InboundEvent) -> InboundEvent:
        """Insert *event*, or replace every field of the row with its id.

        ``recorded_at`` is set to the store clock on every write, so a
        redelivered event becomes the most recent one.

        Returns
        -------
        InboundEvent
            The event as stored, with ``recorded_at`` populated.

        Raises
        ------
        StorageError
            If the database rejects the write.

        """
        if event.occurred_at.tzinfo is None:
            msg = "occurred_at must be timezone aware"
            raise ValueError(msg)

        async with self._operation("upsert into") as session_factory:
            recorded_at = self._clock()
            values = {
                "delivery_id": event.delivery_id,
                "event_kind": event.event_kind,
                "action": event.action,
                "subject_number": event.subject_number,
                "occurred_at": event.occurred_at,
                "raw_payload": event.raw_payload,
                "recorded_at": recorded_at,
            }
            insert = typ.cast("cabc.Callable[..., typ.Any]", self._insert)
            stmt = insert(WebhookEventRecord).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[WebhookEventRecord.delivery_id],
                set_={column: stmt.excluded[column] for column in _REPLACED_COLUMNS},
            )
            try:
                async with session_factory() as session, session.begin():
                    await session.execute(stmt)
            except SQLAlchemyError as exc:
                raise StorageError.write_failed(event.delivery_id) from exc

        return dc.replace(event, recorded_at=recorded_at)

    async def list_recent(self, limit: int) -> list[InboundEvent]:
        """Return up to *limit* events, most recently recorded first.

        The caller enforces any upper bound on *limit*. An empty store yields
        an empty list.
        """
        if limit < 1:
            msg = f"limit must be a positive integer, got {limit}"
            raise ValueError(msg)

        stmt = (
            select(WebhookEventRecord)
            .order_by(
                WebhookEventRecord.recorded_at.desc(),
                WebhookEventRecord.delivery_id.desc(),
            )
            .limit(limit)
        )
        async with self._operation("list events from") as session_factory:
            try:
                async with session_factory() as session:
                    records = (await session.scalars(stmt)).all()
                    return [_to_event(record) for record in records]
            except SQLAlchemyError as exc:
                raise StorageError.read_failed("list_recent") from exc

    async def get_by_id(self, delivery_id: str) -> InboundEvent | None:
        """Return the stored event for *delivery_id*, or ``None``."""
        async with self._operation("read from") as session_factory:
            try:
                async with session_factory() as session:
                    record = await session.get(WebhookEventRecord, delivery_id)
                    return None if record is None else _to_event(record)
            except SQLAlchemyError as exc:
                raise StorageError.read_failed("get_by_id") from exc
