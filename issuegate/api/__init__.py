"""issuegate HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application: webhook ingestion, event queries, the GitHub issue
façade, and health and description endpoints.

Usage
-----
Create and run the application::

    from issuegate.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # full mode with every endpoint

Public API
----------
AppDependencies
    Collaborators injected into the full application.
create_app
    Application factory that configures the Falcon ASGI app.
"""

from issuegate.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
