"""
Fakes shared by the connector tests: an in-process provider HTTP server
and a client factory that needs no network.
"""

from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import parse_qsl

import httpx

from connectors.authorize import AuthorizationUrlBuilder
from connectors.base import ServiceClientFactory
from connectors.exchanger import OAuth1TokenExchanger, OAuth2TokenExchanger
from connectors.provider import ServiceProvider
from connectors.store import ConnectionStore
from connectors.types import OAuthToken, OAuthVersion, ProviderConfig, ProviderEndpoints

ENDPOINTS = ProviderEndpoints(
    request_token_url="https://provider.test/oauth/request_token",
    authorize_url="https://provider.test/oauth/authorize",
    access_token_url="https://provider.test/oauth/access_token",
    token_url="https://provider.test/oauth/token",
)


def provider_config(version: OAuthVersion, name: str = "acme") -> ProviderConfig:
    return ProviderConfig(
        name=name,
        display_name=name.title(),
        api_key="key-123",
        api_secret="secret-456",
        app_id=42,
        oauth_version=version,
    )


class FakeProviderServer:
    """Answers the handshake endpoints the way a well-behaved provider would."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.request_token = ("T1", "TS1")
        self.request_token_expires_in: Optional[str] = None
        self.access_token = ("A1", "AS1")
        self.oauth2_access_token = "A2"
        self.valid_codes = {"good-code"}
        self.access_token_status = 200
        self.access_token_problem: Optional[str] = None
        self.fail_with: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            raise self.fail_with
        path = request.url.path
        if path == "/oauth/request_token":
            token, secret = self.request_token
            body = f"oauth_token={token}&oauth_token_secret={secret}&oauth_callback_confirmed=true"
            if self.request_token_expires_in is not None:
                body += f"&oauth_expires_in={self.request_token_expires_in}"
            return httpx.Response(200, text=body)
        if path == "/oauth/access_token":
            if self.access_token_status != 200:
                body = f"oauth_problem={self.access_token_problem}" if self.access_token_problem else ""
                return httpx.Response(self.access_token_status, text=body)
            token, secret = self.access_token
            return httpx.Response(200, text=f"oauth_token={token}&oauth_token_secret={secret}")
        if path == "/oauth/token":
            form = dict(parse_qsl(request.content.decode()))
            if form.get("code") not in self.valid_codes:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(
                200, json={"access_token": self.oauth2_access_token, "expires_in": 3600}
            )
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class FakeClient:
    def __init__(self, access_token: OAuthToken) -> None:
        self.access_token = access_token


class FakeClientFactory(ServiceClientFactory[FakeClient]):
    """Identifies users by a lookup table keyed on access-token value."""

    def __init__(self, identities: Optional[Dict[str, str]] = None, requires_secret: bool = False) -> None:
        self.identities = identities or {}
        self.requires_secret = requires_secret
        self.lookups = 0

    def create_client(self, access_token: OAuthToken) -> FakeClient:
        return FakeClient(access_token)

    async def fetch_provider_account_id(self, client: FakeClient) -> str:
        self.lookups += 1
        return self.identities.get(client.access_token.value, f"remote-{client.access_token.value}")

    async def fetch_profile_url(self, client: FakeClient) -> Optional[str]:
        return f"https://provider.test/{await self.fetch_provider_account_id(client)}"


def build_provider(
    version: OAuthVersion,
    store: ConnectionStore,
    server: FakeProviderServer,
    *,
    factory: Optional[FakeClientFactory] = None,
    name: str = "acme",
) -> ServiceProvider[FakeClient]:
    config = provider_config(version, name)
    exchanger_cls = OAuth1TokenExchanger if version.is_oauth1 else OAuth2TokenExchanger
    return ServiceProvider(
        config,
        exchanger=exchanger_cls(config, ENDPOINTS, transport=server.transport),
        url_builder=AuthorizationUrlBuilder(config, ENDPOINTS),
        store=store,
        client_factory=factory or FakeClientFactory(requires_secret=version.is_oauth1),
    )
