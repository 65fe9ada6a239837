"""Integration tests for POST /api/search — the quota-gated gateway.

Test strategy:
  - httpx.MockTransport: stands in for the upstream OSINT provider
  - httpx.ASGITransport: drives the app in-process (lifespan not run;
    app.state is populated by the state_app fixture)
  - FakeClock: drives the fixed window deterministically

Covers the full pipeline: 503 not configured → 401 auth → 429 quota →
400 body → upstream errors → success with X-RateLimit-* headers.
"""

from __future__ import annotations

import json

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from osinthub.utils.logger import request_id_var

pytestmark = pytest.mark.asyncio

NFT_TOKEN = "secretXYZ_nft_0xABCdef0000000000000000000000000000000001_1699999999000"
REGULAR_TOKEN = "secretXYZ_session_01HZXAAAAAAAAAAAAAAAAAAAAA"


def _client(application) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=application), base_url="http://test")


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class _MockUpstream:
    """Records upstream-bound payloads and answers with a fixed response."""

    def __init__(self, status_code: int = 200, body=None) -> None:
        self.payloads: list[dict] = []
        self._status_code = status_code
        self._body = {"List": {"Source": {"Data": [{"Email": "john@example.com"}]}}} if body is None else body

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self._status_code, json=self._body)


# ─── Readiness / configuration ────────────────────────────────────────────────


class TestGatewayAvailability:

    async def test_not_ready_returns_503(self, state_app) -> None:
        application = state_app()
        application.state.ready = False
        async with _client(application) as client:
            response = await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})
        assert response.status_code == 503
        assert response.json()["error"]["status"] == "starting"

    async def test_missing_upstream_token_returns_503_before_auth(
        self, state_app, gateway_config
    ) -> None:
        gateway_config.upstream.api_token = None
        upstream = _MockUpstream()
        application = state_app(config=gateway_config, upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post("/api/search", json={"request": "x"})
        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "OSINT API not configured"
        assert "OSINT_API_TOKEN" in body["details"]
        assert upstream.payloads == []


# ─── Authentication ───────────────────────────────────────────────────────────


class TestGatewayAuthentication:

    async def test_missing_authorization_header(self, state_app) -> None:
        async with _client(state_app()) as client:
            response = await client.post("/api/search", json={"request": "x"})
        assert response.status_code == 401
        assert response.json() == {"error": "Authorization required"}

    async def test_wrong_secret(self, state_app) -> None:
        async with _client(state_app()) as client:
            response = await client.post(
                "/api/search", headers=_auth("other_session_X"), json={"request": "x"}
            )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid token"}

    async def test_malformed_nft_token(self, state_app) -> None:
        upstream = _MockUpstream()
        application = state_app(upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post(
                "/api/search", headers=_auth("secretXYZ_x_nft_0xABC"), json={"request": "x"}
            )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid NFT token format"}
        assert upstream.payloads == []
        assert len(application.state.limiters.regular) == 0

    async def test_auth_failure_does_not_consume_quota(self, state_app) -> None:
        application = state_app()
        async with _client(application) as client:
            await client.post("/api/search", headers=_auth("wrong_session_X"), json={"request": "x"})
        assert len(application.state.limiters.nft_holder) == 0
        assert len(application.state.limiters.regular) == 0


# ─── Request id ───────────────────────────────────────────────────────────────


class _RequestIdRecorder:
    """Logger stand-in that notes the bound request_id of every entry."""

    def __init__(self) -> None:
        self.entries: list[tuple[str, object]] = []

    def _record(self, event: str, **kwargs) -> None:
        self.entries.append((event, request_id_var.get()))

    debug = info = warning = error = _record


class TestGatewayRequestId:

    async def test_auth_failure_log_carries_request_id(self, state_app, monkeypatch) -> None:
        recorder = _RequestIdRecorder()
        monkeypatch.setattr("osinthub.auth.middleware.logger", recorder)
        async with _client(state_app()) as client:
            response = await client.post("/api/search", json={"request": "x"})
        assert response.status_code == 401
        [(event, request_id)] = recorder.entries
        assert event.startswith("Authentication failed")
        assert isinstance(request_id, str) and len(request_id) == 26

    async def test_each_request_gets_its_own_id(self, state_app, monkeypatch) -> None:
        recorder = _RequestIdRecorder()
        monkeypatch.setattr("osinthub.auth.middleware.logger", recorder)
        async with _client(state_app()) as client:
            for _ in range(2):
                await client.post(
                    "/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"}
                )
        ids = [request_id for _, request_id in recorder.entries]
        assert len(ids) == 2
        assert None not in ids
        assert ids[0] != ids[1]


# ─── Quota ────────────────────────────────────────────────────────────────────


class TestGatewayQuota:

    async def test_regular_quota_exhaustion_returns_429(self, state_app, clock) -> None:
        application = state_app(clock=clock, regular_limit=2, window_ms=60_000)
        async with _client(application) as client:
            first = await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})
            second = await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})
            third = await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})

        assert first.status_code == 200
        assert first.headers["X-RateLimit-Remaining"] == "1"
        assert second.headers["X-RateLimit-Remaining"] == "0"

        assert third.status_code == 429
        body = third.json()
        assert body["error"] == "Rate limit exceeded"
        assert body["resetTime"] == clock.now + 60_000
        assert body["message"].startswith("Too many requests. Limit resets at ")
        assert body["message"].endswith("Z")
        assert third.headers["X-RateLimit-Limit"] == "2"
        assert third.headers["X-RateLimit-Remaining"] == "0"
        assert third.headers["X-RateLimit-Reset"] == str(clock.now + 60_000)

    async def test_quota_resets_after_window(self, state_app, clock) -> None:
        application = state_app(clock=clock, regular_limit=1, window_ms=1000)
        async with _client(application) as client:
            assert (await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})).status_code == 200
            assert (await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})).status_code == 429
            clock.advance(1001)
            assert (await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})).status_code == 200

    async def test_nft_holders_get_their_own_limit(self, state_app, clock) -> None:
        application = state_app(clock=clock, nft_limit=3, regular_limit=1)
        async with _client(application) as client:
            statuses = [
                (await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})).status_code
                for _ in range(4)
            ]
        assert statuses == [200, 200, 200, 429]

    async def test_nft_quota_is_per_wallet_case_insensitive(self, state_app, clock) -> None:
        upper = "secretXYZ_nft_0xABCDEF0000000000000000000000000000000001_1"
        lower = "secretXYZ_nft_0xabcdef0000000000000000000000000000000001_2"
        application = state_app(clock=clock, nft_limit=1)
        async with _client(application) as client:
            first = await client.post("/api/search", headers=_auth(upper), json={"request": "x"})
            second = await client.post("/api/search", headers=_auth(lower), json={"request": "x"})
        assert first.status_code == 200
        assert second.status_code == 429

    async def test_regular_quota_is_per_token(self, state_app, clock) -> None:
        other = "secretXYZ_session_01HZXBBBBBBBBBBBBBBBBBBBBB"
        application = state_app(clock=clock, regular_limit=1)
        async with _client(application) as client:
            assert (await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})).status_code == 200
            assert (await client.post("/api/search", headers=_auth(other), json={"request": "x"})).status_code == 200

    async def test_quota_consumed_before_body_validation(self, state_app, clock) -> None:
        application = state_app(clock=clock, regular_limit=2)
        async with _client(application) as client:
            bad = await client.post(
                "/api/search",
                headers={**_auth(REGULAR_TOKEN), "Content-Type": "application/json"},
                content=b"{not json",
            )
            assert bad.status_code == 400
            await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})
            denied = await client.post("/api/search", headers=_auth(REGULAR_TOKEN), json={"request": "x"})
        assert denied.status_code == 429


# ─── Body validation ──────────────────────────────────────────────────────────


class TestGatewayBody:

    @pytest.mark.parametrize("payload", [{}, {"request": ""}, {"request": "   "}, {"limit": 5}])
    async def test_missing_query_returns_400(self, state_app, payload) -> None:
        upstream = _MockUpstream()
        application = state_app(upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Search query is required"}
        assert upstream.payloads == []

    async def test_invalid_json_returns_400(self, state_app) -> None:
        async with _client(state_app()) as client:
            response = await client.post(
                "/api/search",
                headers={**_auth(NFT_TOKEN), "Content-Type": "application/json"},
                content=b"not json",
            )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON in request body"}


# ─── Upstream ─────────────────────────────────────────────────────────────────


class TestGatewayUpstream:

    async def test_success_forwards_payload_and_returns_data(self, state_app, clock) -> None:
        upstream = _MockUpstream()
        application = state_app(upstream_handler=upstream.handler, clock=clock, nft_limit=3)
        async with _client(application) as client:
            response = await client.post(
                "/api/search",
                headers=_auth(NFT_TOKEN),
                json={"request": "john@example.com", "limit": 10, "lang": "en"},
            )

        assert response.status_code == 200
        assert response.json() == {"List": {"Source": {"Data": [{"Email": "john@example.com"}]}}}
        assert response.headers["X-RateLimit-Limit"] == "3"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert response.headers["X-RateLimit-Reset"] == str(clock.now + 60_000)

        assert upstream.payloads == [
            {
                "token": "upstream-api-token",
                "request": "john@example.com",
                "limit": 10,
                "lang": "en",
                "type": "json",
            }
        ]

    async def test_default_limit_and_lang(self, state_app) -> None:
        upstream = _MockUpstream()
        application = state_app(upstream_handler=upstream.handler)
        async with _client(application) as client:
            await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert upstream.payloads[0]["limit"] == 100
        assert upstream.payloads[0]["lang"] == "ru"

    async def test_upstream_token_is_not_leaked_to_client(self, state_app) -> None:
        async with _client(state_app()) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert "upstream-api-token" not in response.text

    async def test_upstream_bad_token_maps_to_401(self, state_app) -> None:
        upstream = _MockUpstream(body={"Error code": "bad token"})
        application = state_app(upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert response.status_code == 401
        body = response.json()
        assert body["error"] == "Invalid API Token"
        assert "OSINT_API_TOKEN" in body["message"]
        assert response.headers["X-RateLimit-Remaining"] == "2"

    async def test_upstream_other_error_code_maps_to_400(self, state_app) -> None:
        upstream = _MockUpstream(body={"Error code": "limit exceeded"})
        application = state_app(upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert response.status_code == 400
        assert response.json() == {"error": "OSINT API Error: limit exceeded"}
        assert "X-RateLimit-Limit" in response.headers

    async def test_upstream_non_2xx_maps_to_500_without_debug_in_production(
        self, state_app, gateway_config
    ) -> None:
        upstream = _MockUpstream(status_code=502, body={"oops": True})
        application = state_app(config=gateway_config, upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert response.status_code == 500
        assert response.json() == {
            "error": "Internal server error",
            "details": "Failed to process search request",
        }

    async def test_upstream_failure_includes_debug_outside_production(
        self, state_app, gateway_config
    ) -> None:
        gateway_config.session.environment = "development"
        upstream = _MockUpstream(status_code=503)
        application = state_app(config=gateway_config, upstream_handler=upstream.handler)
        async with _client(application) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert response.status_code == 500
        assert response.json()["debug"] == {
            "type": "UpstreamError",
            "message": "OSINT API returned status 503",
        }

    async def test_upstream_connection_error_maps_to_500(self, state_app) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(state_app(upstream_handler=handler)) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert response.status_code == 500
        assert response.json()["error"] == "Internal server error"

    async def test_upstream_non_json_maps_to_500(self, state_app) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>maintenance</html>")

        async with _client(state_app(upstream_handler=handler)) as client:
            response = await client.post("/api/search", headers=_auth(NFT_TOKEN), json={"request": "x"})
        assert response.status_code == 500
