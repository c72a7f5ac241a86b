"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import contextlib
import datetime as dt
import os
import socket
import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from issuegate.events import EventStore
from tests.helpers.clock import TickingClock
from tests.helpers.database import sqlite_url

if typ.TYPE_CHECKING:
    from pathlib import Path

try:
    from py_pglite import PGliteConfig, PGliteManager

    _PGLITE_AVAILABLE = True
except ImportError:  # pragma: no cover - optional dependency
    _PGLITE_AVAILABLE = False

_CLOCK_START = dt.datetime(2099, 1, 1, tzinfo=dt.UTC)


def _should_use_pglite() -> bool:
    """Return True when tests should run against py-pglite Postgres."""
    target = os.getenv("ISSUEGATE_TEST_DB", "sqlite").lower()
    return target == "pglite" and _PGLITE_AVAILABLE


def _find_free_port() -> int:
    """Find an available TCP port for a temporary Postgres instance."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@contextlib.asynccontextmanager
async def _pglite_engine(tmp_path: Path) -> typ.AsyncIterator[AsyncEngine]:
    """Start a py-pglite Postgres and yield an async engine bound to it."""
    port = _find_free_port()
    work_dir = tmp_path / "pglite"
    config = PGliteConfig(
        use_tcp=True, tcp_host="127.0.0.1", tcp_port=port, work_dir=work_dir
    )

    with PGliteManager(config):
        url = (
            f"postgresql+asyncpg://postgres:postgres@{config.tcp_host}:"
            f"{config.tcp_port}/postgres"
        )
        engine = create_async_engine(url)
        try:
            yield engine
        finally:
            await engine.dispose()


@pytest.fixture
def ticking_clock() -> TickingClock:
    """Return a clock that advances one second per reading."""
    return TickingClock(_CLOCK_START)


@pytest_asyncio.fixture
async def event_store(
    tmp_path: Path, ticking_clock: TickingClock
) -> typ.AsyncIterator[EventStore]:
    """Yield an open event store backed by SQLite or, on request, py-pglite.

    Set ``ISSUEGATE_TEST_DB=pglite`` to run against Postgres when py-pglite
    is installed.
    """
    if _should_use_pglite():
        async with _pglite_engine(tmp_path) as engine:
            store = EventStore(engine=engine, clock=ticking_clock)
            await store.open()
            try:
                yield store
            finally:
                await store.close()
        return

    store = EventStore(sqlite_url(tmp_path), clock=ticking_clock)
    await store.open()
    try:
        yield store
    finally:
        await store.close()
