"""Unit tests for edgepurge.gateway."""

from __future__ import annotations

import json

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from edgepurge.errors import EdgePurgeError, ErrorCode
from edgepurge.gateway import Gateway, _build_headers, build_http_client

GATEWAY = "https://gateway.stackpath.com"


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


class TestBuildHeaders:
    def test_defaults_are_json(self) -> None:
        headers = _build_headers(None)
        assert headers == {"Accept": "application/json", "Content-Type": "application/json"}

    def test_string_becomes_bearer_token(self) -> None:
        assert _build_headers("tok")["Authorization"] == "Bearer tok"

    def test_mapping_is_merged(self) -> None:
        headers = _build_headers({"X-Trace": "1", "Accept": "text/plain"})
        assert headers["X-Trace"] == "1"
        assert headers["Accept"] == "text/plain"
        assert headers["Content-Type"] == "application/json"
        assert "Authorization" not in headers


class TestBuildHttpClient:
    def test_client_configuration(self) -> None:
        client = build_http_client()
        assert isinstance(client, httpx.AsyncClient)
        assert client.timeout.read == 30.0


# ---------------------------------------------------------------------------
# Gateway.request
# ---------------------------------------------------------------------------


class TestGatewayRequest:
    async def test_url_for_joins_endpoint(self, http_client: httpx.AsyncClient) -> None:
        assert Gateway(http_client).url_for("/stack/v1/stacks") == f"{GATEWAY}/stack/v1/stacks"
        assert Gateway(http_client, "https://gw.test/").url_for("a") == "https://gw.test/a"

    async def test_get_with_bearer_token(self, gateway: Gateway) -> None:
        with respx.mock:
            route = respx.get(f"{GATEWAY}/stack/v1/stacks").mock(
                return_value=httpx.Response(200, json={"results": []})
            )
            result = await gateway.request("stack/v1/stacks", headers="tok")

        assert result == {"results": []}
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Accept"] == "application/json"
        assert request.content == b""

    async def test_post_sends_json_body(self, gateway: Gateway) -> None:
        with respx.mock:
            route = respx.post(f"{GATEWAY}/cdn/v1/stacks/s/purge").mock(
                return_value=httpx.Response(200, json={"id": "purge-1"})
            )
            result = await gateway.request(
                "cdn/v1/stacks/s/purge",
                data={"items": [{"url": "https://example.com/a"}]},
                headers={"Authorization": "Bearer tok"},
                method="POST",
            )

        assert result == {"id": "purge-1"}
        request = route.calls.last.request
        assert json.loads(request.content) == {"items": [{"url": "https://example.com/a"}]}
        assert request.headers["Content-Type"] == "application/json"

    async def test_lowercase_method_accepted(self, gateway: Gateway) -> None:
        with respx.mock:
            respx.post(f"{GATEWAY}/x").mock(return_value=httpx.Response(200, json={}))
            assert await gateway.request("x", data={}, method="post") == {}

    async def test_unsupported_method_raises(self, gateway: Gateway) -> None:
        with pytest.raises(EdgePurgeError) as exc_info:
            await gateway.request("x", method="DELETE")
        assert exc_info.value.code == ErrorCode.INVALID_INPUT

    async def test_error_status_returns_none(self, gateway: Gateway) -> None:
        with respx.mock:
            respx.post(f"{GATEWAY}/identity/v1/oauth2/token").mock(
                return_value=httpx.Response(401, json={"error": "invalid_client"})
            )
            result = await gateway.request("identity/v1/oauth2/token", data={}, method="POST")
        assert result is None

    async def test_non_json_returns_none(self, gateway: Gateway) -> None:
        with respx.mock:
            respx.get(f"{GATEWAY}/x").mock(return_value=httpx.Response(200, text="<html>"))
            assert await gateway.request("x") is None

    async def test_empty_body_returns_none(self, gateway: Gateway) -> None:
        with respx.mock:
            respx.get(f"{GATEWAY}/x").mock(return_value=httpx.Response(204))
            assert await gateway.request("x") is None

    async def test_json_array_returns_none(self, gateway: Gateway) -> None:
        with respx.mock:
            respx.get(f"{GATEWAY}/x").mock(return_value=httpx.Response(200, json=[1, 2]))
            assert await gateway.request("x") is None

    async def test_network_error_returns_none(self, gateway: Gateway) -> None:
        with respx.mock:
            respx.get(f"{GATEWAY}/x").mock(side_effect=httpx.ConnectError("Connection refused"))
            assert await gateway.request("x") is None


# ---------------------------------------------------------------------------
# Operational log
# ---------------------------------------------------------------------------


class TestGatewayLogging:
    async def test_request_and_response_logged(self, gateway: Gateway) -> None:
        with respx.mock, capture_logs() as logs:
            respx.post(f"{GATEWAY}/cdn/v1/stacks/s/purge").mock(
                return_value=httpx.Response(200, text='{"ok": true}')
            )
            await gateway.request(
                "cdn/v1/stacks/s/purge", data={"items": []}, headers="tok", method="POST"
            )

        request_log = next(e for e in logs if e["event"] == "gateway_request")
        assert request_log["endpoint"] == "cdn/v1/stacks/s/purge"
        assert request_log["method"] == "POST"
        assert request_log["body"] == {"items": []}

        response_log = next(e for e in logs if e["event"] == "gateway_response")
        assert response_log["status_code"] == 200
        assert response_log["body"] == {"ok": True}

    async def test_non_json_response_logged_raw(self, gateway: Gateway) -> None:
        with respx.mock, capture_logs() as logs:
            respx.get(f"{GATEWAY}/x").mock(return_value=httpx.Response(502, text="Bad gateway"))
            await gateway.request("x")

        response_log = next(e for e in logs if e["event"] == "gateway_response")
        assert response_log["body"] == "Bad gateway"

    async def test_access_token_redacted_in_response(self, gateway: Gateway) -> None:
        with respx.mock, capture_logs() as logs:
            respx.post(f"{GATEWAY}/identity/v1/oauth2/token").mock(
                return_value=httpx.Response(
                    200, json={"access_token": "live-token", "expires_in": 3600}
                )
            )
            result = await gateway.request("identity/v1/oauth2/token", data={}, method="POST")

        assert result == {"access_token": "live-token", "expires_in": 3600}
        response_log = next(e for e in logs if e["event"] == "gateway_response")
        assert response_log["body"] == {"access_token": "********", "expires_in": 3600}
        assert all("live-token" not in str(e) for e in logs)

    async def test_client_secret_redacted(self, gateway: Gateway) -> None:
        with respx.mock, capture_logs() as logs:
            respx.post(f"{GATEWAY}/identity/v1/oauth2/token").mock(
                return_value=httpx.Response(200, json={"access_token": "tok"})
            )
            await gateway.request(
                "identity/v1/oauth2/token",
                data={"client_id": "cid", "client_secret": "hunter2"},
                method="POST",
            )

        request_log = next(e for e in logs if e["event"] == "gateway_request")
        assert request_log["body"] == {"client_id": "cid", "client_secret": "********"}
