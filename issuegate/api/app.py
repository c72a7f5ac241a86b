"""Application factory for the issuegate Falcon ASGI application.

This module provides ``create_app()`` which builds and configures the
Falcon ASGI application with health endpoints and, when dependencies are
supplied, the webhook, event and issue endpoints.

Usage
-----
Create a health-only app::

    app = create_app()

Create a full app::

    from issuegate.api.app import AppDependencies, create_app

    deps = AppDependencies(
        store=store,
        ingestor=ingestor,
        github_client=github_client,
    )
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from issuegate.api.errors import register_error_handlers
from issuegate.api.events.resources import EventCollectionResource, EventResource
from issuegate.api.health.resources import (
    HealthResource,
    HealthzResource,
    ReadyResource,
)
from issuegate.api.issues.resources import (
    IssueCollectionResource,
    IssueCommentsResource,
    IssueResource,
)
from issuegate.api.lifecycle import ResourceLifecycle
from issuegate.api.middleware import (
    DEFAULT_CLIENT_RATE_LIMIT,
    ClientRateLimit,
    SecurityHeaders,
    cors_middleware,
)
from issuegate.api.openapi import OpenAPIResource
from issuegate.api.webhooks.resources import WebhookResource

if typ.TYPE_CHECKING:
    from issuegate.events.store import EventStore
    from issuegate.github.client import GitHubIssuesClient
    from issuegate.webhooks.ingestion import WebhookIngestor

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Collaborators for the Falcon ASGI application.

    Attributes
    ----------
    store
        Event store shared by webhook ingestion and the event endpoints.
    ingestor
        Webhook pipeline writing into ``store``.
    github_client
        Client used by the issue endpoints.
    client_rate_limit
        Inbound rate per client address, such as ``"100/minute"``, or
        ``None`` to disable throttling.

    """

    store: EventStore
    ingestor: WebhookIngestor
    github_client: GitHubIssuesClient
    client_rate_limit: str | None = DEFAULT_CLIENT_RATE_LIMIT


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    ``/health``, ``/ready``, ``/healthz`` and ``/openapi.json`` are always
    registered, behind CORS and security-header middleware. With
    *dependencies*, the app also serves ``/webhook``, ``/events`` and
    ``/issues``, throttles each client address, and manages the lifecycle
    of the shared resources through ASGI lifespan events.

    Parameters
    ----------
    dependencies
        Optional application dependencies.  When ``None``, only health
        and description endpoints are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    middleware: list[object] = [cors_middleware(), SecurityHeaders()]
    if dependencies is not None:
        middleware.append(
            ResourceLifecycle(
                dependencies.store,
                dependencies.ingestor.background,
                dependencies.github_client,
            )
        )
        if dependencies.client_rate_limit is not None:
            middleware.append(ClientRateLimit(dependencies.client_rate_limit))

    app = falcon.asgi.App(middleware=middleware)  # type: ignore[no-matching-overload]  # Falcon stubs

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource())
    app.add_route("/healthz", HealthzResource())
    app.add_route("/openapi.json", OpenAPIResource())

    if dependencies is not None:
        store = dependencies.store
        client = dependencies.github_client
        app.add_route("/webhook", WebhookResource(dependencies.ingestor))
        app.add_route("/events", EventCollectionResource(store))
        app.add_route("/events/{delivery_id}", EventResource(store))
        app.add_route("/issues", IssueCollectionResource(client))
        app.add_route("/issues/{number}", IssueResource(client))
        app.add_route("/issues/{number}/comments", IssueCommentsResource(client))

    register_error_handlers(app)

    return app
