"""Unit tests for CORS, security headers and inbound rate limiting."""

from __future__ import annotations

import typing as typ

import falcon
import falcon.asgi
import falcon.testing
import pytest

from issuegate.api import create_app
from issuegate.api.middleware import (
    SECURITY_HEADERS,
    ClientRateLimit,
    SecurityHeaders,
)
from tests.helpers.api import build_app

if typ.TYPE_CHECKING:
    from issuegate.events import EventStore

_ORIGIN = "https://dashboard.example"
_CLIENT = "203.0.113.7"
_OTHER_CLIENT = "198.51.100.4"


@pytest.fixture
def health_client() -> falcon.testing.TestClient:
    """Build a test client for health-only mode."""
    return falcon.testing.TestClient(create_app())


class TestCors:
    """Tests for cross-origin access."""

    def test_any_origin_is_allowed(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Cross-origin reads are allowed from any origin."""
        result = health_client.simulate_get("/health", headers={"Origin": _ORIGIN})
        assert result.headers.get("Access-Control-Allow-Origin") == "*", (
            "expected wildcard origin"
        )

    def test_relay_headers_are_exposed(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Browsers may read pagination and rate-limit headers."""
        result = health_client.simulate_get("/health", headers={"Origin": _ORIGIN})
        exposed = result.headers.get("Access-Control-Expose-Headers", "")
        for name in ("Link", "X-RateLimit-Remaining", "Retry-After"):
            assert name in exposed, f"{name} should be exposed"

    def test_preflight(self, health_client: falcon.testing.TestClient) -> None:
        """Preflight requests are answered with the allowed methods."""
        result = health_client.simulate_options(
            "/health",
            headers={
                "Origin": _ORIGIN,
                "Access-Control-Request-Method": "GET",
            },
        )
        assert result.status_code == 200, "preflight should succeed"
        assert "GET" in result.headers.get("Access-Control-Allow-Methods", ""), (
            "GET should be allowed"
        )

    def test_same_origin_requests_get_no_cors_headers(
        self, health_client: falcon.testing.TestClient
    ) -> None:
        """Requests without ``Origin`` are not decorated."""
        result = health_client.simulate_get("/health")
        assert "Access-Control-Allow-Origin" not in result.headers, (
            "no CORS headers without an Origin"
        )


class TestSecurityHeaders:
    """Tests for ``SecurityHeaders``."""

    @pytest.mark.parametrize("path", ["/health", "/missing"])
    def test_headers_on_every_response(
        self, health_client: falcon.testing.TestClient, path: str
    ) -> None:
        """Success and error responses both carry the security headers."""
        result = health_client.simulate_get(path)
        for name, value in SECURITY_HEADERS.items():
            assert result.headers.get(name) == value, f"missing {name}"

    def test_custom_headers(self) -> None:
        """A custom mapping replaces the defaults."""
        custom = SecurityHeaders({"X-Frame-Options": "DENY"})
        app = falcon.asgi.App(middleware=[custom])
        result = falcon.testing.TestClient(app).simulate_get("/")
        assert result.headers.get("X-Frame-Options") == "DENY", "expected DENY"
        assert "Strict-Transport-Security" not in result.headers, (
            "defaults should not be merged in"
        )


class TestClientRateLimit:
    """Tests for ``ClientRateLimit``."""

    def test_rejects_invalid_rate(self) -> None:
        """Unparseable rate expressions fail at construction."""
        with pytest.raises(ValueError, match="often"):
            ClientRateLimit("often")

    @pytest.mark.asyncio
    async def test_throttles_after_limit(self, event_store: EventStore) -> None:
        """Requests past the limit answer 429 with ``Retry-After``."""
        app = build_app(event_store, client_rate_limit="2/minute")
        async with falcon.testing.ASGIConductor(app) as conductor:
            for _ in range(2):
                allowed = await conductor.simulate_get("/events", remote_addr=_CLIENT)
                assert allowed.status_code == 200, "within the limit"

            result = await conductor.simulate_get("/events", remote_addr=_CLIENT)

        assert result.status_code == 429, "expected HTTP 429"
        assert result.json["title"] == "Too many requests", "unexpected title"
        retry_after = int(result.headers["Retry-After"])
        assert 1 <= retry_after <= 60, "retry-after should fall within the window"
        assert result.headers.get("X-Content-Type-Options") == "nosniff", (
            "throttled responses keep the security headers"
        )

    @pytest.mark.asyncio
    async def test_clients_are_counted_separately(
        self, event_store: EventStore
    ) -> None:
        """One client's usage does not throttle another."""
        app = build_app(event_store, client_rate_limit="1/minute")
        async with falcon.testing.ASGIConductor(app) as conductor:
            await conductor.simulate_get("/events", remote_addr=_CLIENT)
            throttled = await conductor.simulate_get("/events", remote_addr=_CLIENT)
            other = await conductor.simulate_get("/events", remote_addr=_OTHER_CLIENT)

        assert throttled.status_code == 429, "first client should be throttled"
        assert other.status_code == 200, "second client should be served"

    @pytest.mark.asyncio
    async def test_probes_and_preflights_are_not_counted(
        self, event_store: EventStore
    ) -> None:
        """Health probes and preflights never consume or hit the limit."""
        app = build_app(event_store, client_rate_limit="1/minute")
        async with falcon.testing.ASGIConductor(app) as conductor:
            for path in ("/health", "/ready", "/healthz", "/health"):
                probe = await conductor.simulate_get(path, remote_addr=_CLIENT)
                assert probe.status_code == 200, f"{path} should not be throttled"
            preflight = await conductor.simulate_options(
                "/events",
                remote_addr=_CLIENT,
                headers={
                    "Origin": _ORIGIN,
                    "Access-Control-Request-Method": "GET",
                },
            )
            listed = await conductor.simulate_get("/events", remote_addr=_CLIENT)

        assert preflight.status_code == 200, "preflight should not be throttled"
        assert listed.status_code == 200, "limit should still be unused"

    @pytest.mark.asyncio
    async def test_disabled(self, event_store: EventStore) -> None:
        """``None`` turns throttling off."""
        app = build_app(event_store, client_rate_limit=None)
        async with falcon.testing.ASGIConductor(app) as conductor:
            results = [
                await conductor.simulate_get("/events", remote_addr=_CLIENT)
                for _ in range(5)
            ]

        assert all(r.status_code == 200 for r in results), "nothing throttled"
