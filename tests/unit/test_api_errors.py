"""Unit tests for issuegate.api.errors exceptions and error handlers.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_errors.py

"""

from __future__ import annotations

import falcon.asgi
import falcon.testing
import pytest
from sqlalchemy.exc import OperationalError

from issuegate.api.errors import (
    ClientRateLimitedError,
    EventNotFoundError,
    InvalidInputError,
    register_error_handlers,
)
from issuegate.events import StorageError
from issuegate.github import GitHubAPIError, RateLimitExceededError
from issuegate.webhooks import AuthenticationFailure, MalformedDelivery
from tests.helpers.femtologging_capture import capture_femto_logs


class _RaisingResource:
    """Resource that raises whatever exception it was built with."""

    def __init__(self, error: Exception) -> None:
        self._error = error

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response
    ) -> None:
        raise self._error


def _storage_error() -> StorageError:
    error = StorageError.write_failed("d-1")
    error.__cause__ = OperationalError("INSERT", {}, Exception("db password=x"))
    return error


_ERRORS: dict[str, Exception] = {
    "invalid": InvalidInputError("must be positive", field="limit"),
    "invalid-no-field": InvalidInputError("bad request"),
    "not-found": EventNotFoundError("d-404"),
    "unauthenticated": AuthenticationFailure.invalid_signature(),
    "malformed": MalformedDelivery.missing_header("X-GitHub-Event"),
    "storage": _storage_error(),
    "rate-limited": RateLimitExceededError(17),
    "rate-limited-unknown": RateLimitExceededError(),
    "client-throttled": ClientRateLimitedError(42),
    "github-404": GitHubAPIError.http_error(404, "Not Found"),
    "github-422": GitHubAPIError.http_error(422, "Validation Failed"),
    "github-500": GitHubAPIError.http_error(500),
    "github-timeout": GitHubAPIError.timeout(),
}


@pytest.fixture
def client() -> falcon.testing.TestClient:
    """Build a test client with every handler registered."""
    app = falcon.asgi.App()
    for name, error in _ERRORS.items():
        app.add_route(f"/{name}", _RaisingResource(error))
    register_error_handlers(app)
    return falcon.testing.TestClient(app)


@pytest.mark.parametrize(
    ("path", "status", "title"),
    [
        ("/invalid", falcon.HTTP_400, "Invalid input"),
        ("/not-found", falcon.HTTP_404, "Event not found"),
        ("/unauthenticated", falcon.HTTP_401, "Unauthorized"),
        ("/malformed", falcon.HTTP_400, "Invalid webhook delivery"),
        ("/storage", falcon.HTTP_503, "Service unavailable"),
        ("/rate-limited", falcon.HTTP_429, "Too many requests"),
        ("/client-throttled", falcon.HTTP_429, "Too many requests"),
        ("/github-404", falcon.HTTP_404, "Not found"),
        ("/github-422", falcon.HTTP_422, "Unprocessable entity"),
        ("/github-500", falcon.HTTP_502, "Bad gateway"),
        ("/github-timeout", falcon.HTTP_502, "Bad gateway"),
    ],
)
def test_status_and_title(
    client: falcon.testing.TestClient, path: str, status: str, title: str
) -> None:
    """Each error class maps to its HTTP status and title."""
    result = client.simulate_get(path)
    assert result.status == status, f"expected {status} for {path}"
    assert result.json["title"] == title, f"wrong title for {path}"


class TestInvalidInput:
    """Tests for the ``InvalidInputError`` handler."""

    def test_includes_field(self, client: falcon.testing.TestClient) -> None:
        """The failing field is reported when known."""
        result = client.simulate_get("/invalid")
        assert result.json == {
            "title": "Invalid input",
            "description": "must be positive",
            "field": "limit",
        }, "unexpected body"

    def test_omits_missing_field(self, client: falcon.testing.TestClient) -> None:
        """No ``field`` key is sent when the error has none."""
        result = client.simulate_get("/invalid-no-field")
        assert "field" not in result.json, "field should be omitted"

    def test_message_format(self) -> None:
        """The exception message prefixes the field."""
        assert str(InvalidInputError("bad", field="page")) == "page: bad", (
            "unexpected message"
        )


def test_event_not_found_mentions_delivery_id(
    client: falcon.testing.TestClient,
) -> None:
    """The description names the missing delivery."""
    result = client.simulate_get("/not-found")
    assert "d-404" in result.json["description"], "missing delivery id"


def test_storage_error_hides_driver_detail(
    client: falcon.testing.TestClient,
) -> None:
    """Store failures are logged, and the driver message is not returned."""
    with capture_femto_logs("issuegate.api.errors") as capture:
        result = client.simulate_get("/storage")
        capture.wait_for_count(1)
    assert "password" not in result.text, "driver detail leaked"
    assert capture.records[0].level == "ERROR", "expected ERROR log"
    assert "GET /storage" in capture.records[0].message, "missing request line"


class TestRateLimited:
    """Tests for the ``RateLimitExceededError`` handler."""

    def test_sets_retry_after(self, client: falcon.testing.TestClient) -> None:
        """Known waits are sent as ``Retry-After``."""
        result = client.simulate_get("/rate-limited")
        assert result.headers.get("Retry-After") == "17", "missing Retry-After"

    def test_unknown_wait(self, client: falcon.testing.TestClient) -> None:
        """No ``Retry-After`` header when the wait is unknown."""
        result = client.simulate_get("/rate-limited-unknown")
        assert result.status == falcon.HTTP_429, "expected HTTP 429"
        assert "Retry-After" not in result.headers, "unexpected Retry-After"

    def test_client_throttle_sets_retry_after(
        self, client: falcon.testing.TestClient
    ) -> None:
        """Inbound throttling always tells the client how long to wait."""
        result = client.simulate_get("/client-throttled")
        assert result.headers.get("Retry-After") == "42", "missing Retry-After"
