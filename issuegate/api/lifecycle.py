"""ASGI lifespan middleware owning the long-lived resources.

On startup the event store is opened (unless the caller already opened it).
On shutdown, background webhook writes are drained first so none is cut off,
then the store and the GitHub HTTP client are closed.

Usage
-----
Register the middleware when creating the Falcon app::

    lifespan = ResourceLifecycle(store, background, github_client)
    app = falcon.asgi.App(middleware=[lifespan])

"""

from __future__ import annotations

import typing as typ

from issuegate.events.store import StoreState
from issuegate.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from issuegate.events.store import EventStore
    from issuegate.github.client import GitHubIssuesClient
    from issuegate.webhooks.ingestion import BackgroundPersistence

__all__ = ["ResourceLifecycle"]

logger = get_logger(__name__)


class ResourceLifecycle:
    """Falcon middleware opening and releasing shared resources.

    Parameters
    ----------
    store
        Event store opened on startup and closed on shutdown.
    background
        Pending webhook writes to drain before the store closes.
    github_client
        GitHub client whose HTTP connections are closed on shutdown.

    """

    def __init__(
        self,
        store: EventStore,
        background: BackgroundPersistence,
        github_client: GitHubIssuesClient,
    ) -> None:
        """Initialize the middleware with the resources it manages."""
        self._store = store
        self._background = background
        self._github_client = github_client

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Open the event store if nobody has opened it yet."""
        if self._store.state is StoreState.UNOPENED:
            await self._store.open()

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Drain pending writes, then close the store and the HTTP client."""
        pending = self._background.pending
        if pending:
            log_info(logger, "Draining %d pending webhook writes", pending)
        try:
            await self._background.drain()
            await self._store.close()
        finally:
            await self._github_client.aclose()
