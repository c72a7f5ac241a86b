"""issuegate runtime entrypoint.

This module provides the ASGI application factory used by Granian. It
builds the service's collaborators explicitly from environment
configuration (see :mod:`issuegate.config`) and delegates app assembly to
:func:`issuegate.api.app.create_app`.

Server settings are read by :func:`main`:

- ``ISSUEGATE_HOST``: Bind address (default ``0.0.0.0``)
- ``ISSUEGATE_PORT``: Listen port (default ``3000``)
- ``ISSUEGATE_LOG_LEVEL``: Log level (default ``INFO``)

Run the service directly with ``python -m issuegate.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from issuegate.api.app import AppDependencies
from issuegate.api.app import create_app as create_api_app
from issuegate.config import ServiceConfig
from issuegate.events.store import EventStore
from issuegate.github.client import GitHubIssuesClient
from issuegate.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from issuegate.webhooks.ingestion import WebhookIngestor
from issuegate.webhooks.signature import SignatureVerifier

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["build_dependencies", "create_app", "main"]

logger = get_logger(__name__)

# TCP port number range limits
_MIN_PORT = 1
_MAX_PORT = 65535
DEFAULT_PORT = "3000"


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid ISSUEGATE_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def build_dependencies(config: ServiceConfig) -> AppDependencies:
    """Construct the store, ingestion pipeline and GitHub client.

    Nothing touches the network or the database here; the store is opened
    by the app's lifespan handler.
    """
    store = EventStore(config.database_url)
    ingestor = WebhookIngestor(
        SignatureVerifier(config.webhook.secret),
        store,
        mode=config.webhook.ack_mode,
    )
    return AppDependencies(
        store=store,
        ingestor=ingestor,
        github_client=GitHubIssuesClient(config.github),
        client_rate_limit=config.client_rate_limit,
    )


def create_app() -> falcon.asgi.App:
    """Create the fully wired Falcon ASGI application.

    Raises
    ------
    GitHubConfigError
        If GitHub credentials or repository coordinates are missing.
    MissingWebhookSecretError
        If ``ISSUEGATE_WEBHOOK_SECRET`` is unset.

    """
    config = ServiceConfig.from_env()
    log_info(
        logger,
        "Building issuegate for %s/%s (ack_mode=%s)",
        config.github.owner,
        config.github.repo,
        config.webhook.ack_mode,
    )
    return create_api_app(build_dependencies(config))


def main() -> None:
    """Start the issuegate server using Granian.

    Reads ``ISSUEGATE_HOST``, ``ISSUEGATE_PORT``, and ``ISSUEGATE_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("ISSUEGATE_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port_str = os.environ.get("ISSUEGATE_PORT", DEFAULT_PORT)
    port = _parse_port(port_str)
    log_level_str = os.environ.get("ISSUEGATE_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid ISSUEGATE_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting issuegate on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "issuegate.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
