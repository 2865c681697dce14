from __future__ import annotations

import json

import httpx
import pytest

from access_tokens_client import (
    AccessTokensClient,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    ValidationError,
)
from access_tokens_client.config_types import ClientConfig


def _record(**overrides) -> dict:
    data = {"tokenId": "t1", "owner": "bob", "isAdmin": False, "createdAt": 1700000000}
    data.update(overrides)
    return data


class _Server:
    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.auth_status = 200
        self.patch_response = httpx.Response(204)
        self.stored = _record()

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/auth/token":
            if self.auth_status != 200:
                return httpx.Response(
                    self.auth_status,
                    json={"error": {"message": "Invalid Authorization token"}},
                )
            return httpx.Response(200, json={"access_token": "jwt-1", "token_type": "Bearer", "expires_in": 3600})
        if request.method == "PATCH" and path == "/admin/tokens/t1":
            if self.patch_response.status_code == 204:
                self.stored.update(json.loads(request.content))
            return self.patch_response
        if request.method == "POST" and path == "/admin/tokens/batch":
            return httpx.Response(200, json={"found": [self.stored], "notFound": []})
        return httpx.Response(404, json={"error": {"message": "no route"}})


def _client(server: _Server, **kwargs) -> AccessTokensClient:
    return AccessTokensClient(
        ClientConfig(endpoint="https://tokens.example.test", api_key="admin-key"),
        transport=httpx.MockTransport(server),
        sleep=lambda _s: None,
        **kwargs,
    )


def test_update_sends_only_present_fields_and_returns_server_state() -> None:
    server = _Server()
    with _client(server) as client:
        record = client.update("t1", {"owner": "alice"})

    patches = server.calls("PATCH", "/admin/tokens/t1")
    assert len(patches) == 1
    assert json.loads(patches[0].content) == {"owner": "alice"}
    assert patches[0].headers["Authorization"] == "Bearer jwt-1"
    assert record.owner == "alice"


def test_admin_token_is_only_sent_to_auth_endpoint() -> None:
    server = _Server()
    with _client(server) as client:
        client.update("t1", {"owner": "alice"})

    auth = server.calls("POST", "/auth/token")
    assert auth[0].headers["Authorization"] == "Bearer admin-key"
    others = [r for r in server.requests if r.url.path != "/auth/token"]
    assert all(r.headers["Authorization"] == "Bearer jwt-1" for r in others)


def test_update_transmits_explicit_null_to_clear_expiry() -> None:
    server = _Server()
    server.stored["expiresAt"] = 1800000000
    with _client(server) as client:
        record = client.update("t1", {"expires_at": None, "is_admin": True})

    body = json.loads(server.calls("PATCH", "/admin/tokens/t1")[0].content)
    assert body == {"expiresAt": None, "isAdmin": True}
    assert record.expires_at is None
    assert record.is_admin is True


def test_update_rejects_unknown_field_before_any_request() -> None:
    server = _Server()
    with _client(server) as client:
        with pytest.raises(ValidationError) as exc:
            client.update("t1", {"roles": ["a"]})

    assert "roles" in str(exc.value)
    assert exc.value.status_code is None
    assert server.requests == []


def test_update_rejects_empty_updates() -> None:
    server = _Server()
    with _client(server) as client:
        with pytest.raises(ValidationError):
            client.update("t1", {})
    assert server.requests == []


def test_update_prefers_record_in_response_body() -> None:
    server = _Server()
    server.patch_response = httpx.Response(200, json={"record": _record(owner="carol")})
    with _client(server) as client:
        record = client.update("t1", {"owner": "carol"})

    assert record.owner == "carol"
    assert server.calls("POST", "/admin/tokens/batch") == []


def test_update_is_not_retried_on_server_error() -> None:
    server = _Server()
    server.patch_response = httpx.Response(503)
    with _client(server) as client:
        with pytest.raises(ApiError) as exc:
            client.update("t1", {"owner": "alice"})

    assert exc.value.status_code == 503
    assert "Failed to update token t1" in str(exc.value)
    assert len(server.calls("PATCH", "/admin/tokens/t1")) == 1


def test_update_network_error_is_not_retried() -> None:
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/token":
            return httpx.Response(200, json={"access_token": "jwt-1", "token_type": "Bearer", "expires_in": 3600})
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = AccessTokensClient(
        ClientConfig(endpoint="https://tokens.example.test", api_key="admin-key"),
        transport=httpx.MockTransport(handler),
        sleep=lambda _s: None,
    )
    with pytest.raises(NetworkError):
        client.update("t1", {"owner": "alice"})
    client.close()

    assert len(attempts) == 1


def test_auth_failure_raises_authentication_error_without_mutation() -> None:
    server = _Server()
    server.auth_status = 401
    with _client(server) as client:
        with pytest.raises(AuthenticationError) as exc:
            client.update("t1", {"owner": "alice"})

    assert "Invalid Authorization token" in str(exc.value)
    assert len(server.calls("POST", "/auth/token")) == 1
    assert server.calls("PATCH", "/admin/tokens/t1") == []


@pytest.mark.parametrize(
    ("status", "error_type"),
    [(404, NotFoundError), (400, ValidationError), (403, AuthenticationError)],
)
def test_update_maps_status_to_error_type(status, error_type) -> None:
    server = _Server()
    server.patch_response = httpx.Response(
        status,
        json={"error": {"message": "rejected", "details": {"owner": "bad"}}},
    )
    with _client(server) as client:
        with pytest.raises(error_type) as exc:
            client.update("t1", {"owner": "x"})

    assert exc.value.status_code == status
    assert "rejected" in str(exc.value)
    assert json.loads(exc.value.details) == {"owner": "bad"}


def test_jwt_is_cached_until_close_to_expiry() -> None:
    server = _Server()
    now = [1000.0]
    with _client(server, clock=lambda: now[0]) as client:
        client.update("t1", {"owner": "a"})
        client.update("t1", {"owner": "b"})
        assert len(server.calls("POST", "/auth/token")) == 1

        now[0] += 3600 - 10
        client.update("t1", {"owner": "c"})
        assert len(server.calls("POST", "/auth/token")) == 2
