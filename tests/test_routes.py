"""
End-to-end tests for the connector HTTP routes with mocked providers.
"""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from connectors.dependencies import issue_account_token
from connectors.registry import ConnectorRegistry
from connectors.routes import router
from connectors.store import InMemoryConnectionStore
from connectors.types import OAuthVersion
from tests.fakes import FakeProviderServer, build_provider

PREFIX = "/api/v1/connectors"


@pytest.fixture
def server():
    return FakeProviderServer()


@pytest.fixture
def client(server):
    ConnectorRegistry.reset()
    store = InMemoryConnectionStore()
    registry = ConnectorRegistry()
    registry.register(build_provider(OAuthVersion.ONE_A, store, server, name="acme1"))
    registry.register(build_provider(OAuthVersion.TWO, store, server, name="acme2"))

    app = FastAPI()
    app.include_router(router, prefix=PREFIX)
    with TestClient(app) as test_client:
        yield test_client
    ConnectorRegistry.reset()


def _auth(account_id: str = "A42") -> dict:
    return {"Authorization": f"Bearer {issue_account_token(account_id)}"}


def _state_from(authorize_url: str) -> str:
    return parse_qs(urlsplit(authorize_url).query)["state"][0]


class TestProvidersAndAuth:
    def test_list_providers_is_public(self, client):
        response = client.get(f"{PREFIX}/providers")
        assert response.status_code == 200
        assert [p["provider"] for p in response.json()] == ["acme1", "acme2"]

    def test_connections_require_account(self, client):
        assert client.get(f"{PREFIX}/connections").status_code in (401, 403)
        bad = {"Authorization": "Bearer not-a-token"}
        assert client.get(f"{PREFIX}/connections", headers=bad).status_code == 401

    def test_unknown_provider(self, client):
        response = client.post(f"{PREFIX}/nope/connect", headers=_auth())
        assert response.status_code == 404


class TestOAuth1Routes:
    def test_connect_and_callback(self, client):
        response = client.post(f"{PREFIX}/acme1/connect", headers=_auth())
        assert response.status_code == 200
        assert "oauth_token=T1" in response.json()["authorize_url"]
        assert "acme1_request_token" in response.cookies

        response = client.get(
            f"{PREFIX}/acme1/callback", params={"oauth_token": "T1", "oauth_verifier": "v"}
        )
        assert response.status_code == 201
        assert response.json()["provider_account_id"] == "remote-A1"

        listed = client.get(f"{PREFIX}/connections", headers=_auth()).json()
        assert [(c["provider"], c["provider_account_id"]) for c in listed] == [("acme1", "remote-A1")]

    def test_replayed_callback_is_gone(self, client):
        response = client.post(f"{PREFIX}/acme1/connect", headers=_auth())
        cookie = response.cookies["acme1_request_token"]
        params = {"oauth_token": "T1", "oauth_verifier": "v"}
        assert client.get(f"{PREFIX}/acme1/callback", params=params).status_code == 201

        client.cookies.set("acme1_request_token", cookie)
        assert client.get(f"{PREFIX}/acme1/callback", params=params).status_code == 410

    def test_callback_without_cookie(self, client):
        response = client.get(
            f"{PREFIX}/acme1/callback", params={"oauth_token": "T1", "oauth_verifier": "v"}
        )
        assert response.status_code == 400

    def test_state_token_is_not_a_request_token_cookie(self, client):
        authorize_url = client.post(f"{PREFIX}/acme2/connect", headers=_auth()).json()["authorize_url"]
        client.cookies.set("acme1_request_token", _state_from(authorize_url))
        response = client.get(
            f"{PREFIX}/acme1/callback", params={"oauth_token": "T1", "oauth_verifier": "v"}
        )
        assert response.status_code == 400

    def test_denied_authorization(self, client):
        client.post(f"{PREFIX}/acme1/connect", headers=_auth())
        response = client.get(f"{PREFIX}/acme1/callback", params={"denied": "T1"})
        assert response.status_code == 400

    def test_unreachable_provider(self, client, server):
        server.fail_with = httpx.ConnectError("down")
        response = client.post(f"{PREFIX}/acme1/connect", headers=_auth())
        assert response.status_code == 502


class TestOAuth2Routes:
    def _start(self, client) -> str:
        response = client.post(f"{PREFIX}/acme2/connect", headers=_auth())
        assert response.status_code == 200
        url = response.json()["authorize_url"]
        assert "client_id=key-123" in url
        return _state_from(url)

    def test_connect_and_callback(self, client):
        state = self._start(client)
        response = client.get(f"{PREFIX}/acme2/callback", params={"code": "good-code", "state": state})
        assert response.status_code == 201
        assert response.json()["provider_account_id"] == "remote-A2"

    def test_duplicate_connection_conflicts(self, client):
        state = self._start(client)
        params = {"code": "good-code", "state": state}
        assert client.get(f"{PREFIX}/acme2/callback", params=params).status_code == 201
        assert client.get(f"{PREFIX}/acme2/callback", params=params).status_code == 409

    def test_invalid_code(self, client):
        state = self._start(client)
        response = client.get(f"{PREFIX}/acme2/callback", params={"code": "bad", "state": state})
        assert response.status_code == 400

    def test_tampered_state(self, client):
        state = self._start(client)
        response = client.get(
            f"{PREFIX}/acme2/callback", params={"code": "good-code", "state": state + "0"}
        )
        assert response.status_code == 400

    def test_provider_error_param(self, client):
        state = self._start(client)
        response = client.get(f"{PREFIX}/acme2/callback", params={"error": "access_denied", "state": state})
        assert response.status_code == 400


class TestDisconnectRoutes:
    def test_disconnect_all_and_one(self, client):
        state = client.post(f"{PREFIX}/acme2/connect", headers=_auth()).json()["authorize_url"]
        client.get(f"{PREFIX}/acme2/callback", params={"code": "good-code", "state": _state_from(state)})

        response = client.delete(f"{PREFIX}/acme2/remote-A2", headers=_auth())
        assert response.status_code == 200
        assert client.get(f"{PREFIX}/connections", headers=_auth()).json() == []

        # nothing left: still succeeds
        assert client.delete(f"{PREFIX}/acme2", headers=_auth()).status_code == 200
        assert client.delete(f"{PREFIX}/acme2", headers=_auth()).status_code == 200
