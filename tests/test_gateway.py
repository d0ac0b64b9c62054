"""Tests for the HTTP gateway."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from pairgate.config.schema import Config, GatewayConfig, RateLimitConfig
from pairgate.gateway.server import GatewayServer
from pairgate.pairing.service import PairingService
from pairgate.pairing.tokens import TokenIssuer


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def app(service, config):
    return GatewayServer(service, config).app


@pytest.fixture
async def client(aiohttp_client, app):
    return await aiohttp_client(app)


PAIR_BODY = {"userId": "u1", "deviceId": "d1", "code": "123456"}


# ── Health ──────────────────────────────────────────────────────────


class TestHealth:
    async def test_healthy(self, client):
        resp = await client.get("/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "healthy"
        assert data["timestamp"].endswith("Z")

    async def test_security_headers(self, client):
        resp = await client.get("/health")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


# ── POST /pair ──────────────────────────────────────────────────────


class TestPair:
    async def test_success(self, client, store):
        store.create_code("u1", code="123456")
        resp = await client.post("/pair", json=PAIR_BODY)
        assert resp.status == 200
        data = await resp.json()
        assert data["success"] is True
        assert data["message"] == "Device paired successfully"
        assert data["expiresIn"] == 3600
        assert len(data["pairingToken"]) == 43

    async def test_repeat_is_already_used(self, client, store):
        store.create_code("u1", code="123456")
        first = await client.post("/pair", json=PAIR_BODY)
        assert first.status == 200

        second = await client.post("/pair", json=PAIR_BODY)
        assert second.status == 410
        data = await second.json()
        assert data == {"success": False, "message": "Pairing code has already been used"}

    async def test_unknown_code(self, client):
        resp = await client.post("/pair", json=PAIR_BODY)
        assert resp.status == 404
        assert (await resp.json())["success"] is False

    async def test_device_mismatch_looks_like_unknown(self, client, store):
        store.create_code("u1", expected_device_id="D1", code="123456")
        resp = await client.post("/pair", json=PAIR_BODY)
        assert resp.status == 404
        assert (await resp.json())["message"] == "Invalid pairing code"

    async def test_expired(self, client, store, clock):
        store.create_code("u1", code="123456", ttl=timedelta(seconds=1))
        clock.advance(seconds=2)
        resp = await client.post("/pair", json=PAIR_BODY)
        assert resp.status == 410
        assert (await resp.json())["message"] == "Pairing code has expired"


class TestPairValidation:
    async def test_short_code_never_reaches_store(self, aiohttp_client, config):
        store = MagicMock()
        app = GatewayServer(PairingService(store, TokenIssuer()), config).app
        client = await aiohttp_client(app)

        resp = await client.post("/pair", json={**PAIR_BODY, "code": "12345"})
        assert resp.status == 400
        data = await resp.json()
        assert data["errors"][0]["field"] == "code"
        assert data["errors"][0]["message"] == "Valid 6-digit code is required"
        store.try_consume.assert_not_called()

    async def test_rejected_code_not_logged(self, client, log_records):
        resp = await client.post("/pair", json={**PAIR_BODY, "code": "QWXYZ"})
        assert resp.status == 400
        assert "value" not in (await resp.json())["errors"][0]
        assert any("Validation errors" in r["message"] for r in log_records)
        assert all("QWXYZ" not in r["message"] for r in log_records)

    async def test_all_fields_reported(self, client):
        resp = await client.post("/pair", json={"userId": "", "code": 123456})
        assert resp.status == 400
        fields = {e["field"] for e in (await resp.json())["errors"]}
        assert fields == {"userId", "deviceId", "code"}

    async def test_invalid_json(self, client):
        resp = await client.post("/pair", data="not json{", headers={"Content-Type": "application/json"})
        assert resp.status == 400
        assert (await resp.json())["errors"][0]["field"] == "body"

    async def test_non_object_body(self, client):
        resp = await client.post("/pair", json=["u1", "d1", "123456"])
        assert resp.status == 400


class TestPairInternalError:
    def _failing_app(self, config: Config):
        store = MagicMock()
        store.try_consume.side_effect = RuntimeError("store unavailable")
        return GatewayServer(PairingService(store, TokenIssuer()), config).app

    async def test_detail_in_development(self, aiohttp_client):
        client = await aiohttp_client(self._failing_app(Config(environment="development")))
        resp = await client.post("/pair", json=PAIR_BODY)
        assert resp.status == 500
        data = await resp.json()
        assert data["message"] == "Internal server error during pairing"
        assert data["error"] == "store unavailable"

    async def test_no_detail_in_production(self, aiohttp_client):
        client = await aiohttp_client(self._failing_app(Config(environment="production")))
        resp = await client.post("/pair", json=PAIR_BODY)
        assert resp.status == 500
        assert "error" not in await resp.json()


# ── Fallbacks ───────────────────────────────────────────────────────


class TestFallbacks:
    async def test_unknown_route(self, client):
        resp = await client.get("/nope")
        assert resp.status == 404
        assert await resp.json() == {"success": False, "message": "Endpoint not found"}

    async def test_wrong_method(self, client):
        resp = await client.get("/pair")
        assert resp.status == 404

    async def test_unhandled_exception(self, aiohttp_client, service, config):
        server = GatewayServer(service, config)

        async def boom(request):
            raise RuntimeError("boom")

        server.app.router.add_get("/boom", boom)
        client = await aiohttp_client(server.app)
        resp = await client.get("/boom")
        assert resp.status == 500
        assert await resp.json() == {"success": False, "message": "Internal server error"}

    async def test_cors_preflight(self, client):
        resp = await client.options(
            "/pair",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )
        assert resp.status == 204
        assert resp.headers["Access-Control-Allow-Headers"] == "content-type"
        assert "POST" in resp.headers["Access-Control-Allow-Methods"]


class TestRateLimit:
    async def test_limit_exceeded(self, aiohttp_client, service):
        config = Config(gateway=GatewayConfig(rate_limit=RateLimitConfig(max_requests=2)))
        client = await aiohttp_client(GatewayServer(service, config).app)

        assert (await client.get("/health")).status == 200
        assert (await client.get("/health")).status == 200
        resp = await client.get("/health")
        assert resp.status == 429
        assert "Retry-After" in resp.headers
        assert (await resp.json())["success"] is False

    async def test_disabled(self, aiohttp_client, service):
        config = Config(gateway=GatewayConfig(rate_limit=RateLimitConfig(enabled=False, max_requests=1)))
        client = await aiohttp_client(GatewayServer(service, config).app)
        for _ in range(3):
            assert (await client.get("/health")).status == 200
