"""
Gowalla — OAuth2 provider binding.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from config.settings import config
from connectors.authorize import AuthorizationUrlBuilder
from connectors.base import ServiceClientFactory
from connectors.exchanger import OAuth2TokenExchanger
from connectors.http import provider_request
from connectors.provider import ServiceProvider
from connectors.store import ConnectionStore
from connectors.types import OAuthToken, OAuthVersion, ProviderConfig, ProviderEndpoints

_GOWALLA_WEB = "https://gowalla.com"
_GOWALLA_API = "https://api.gowalla.com"

GOWALLA_ENDPOINTS = ProviderEndpoints(
    authorize_url=f"{_GOWALLA_WEB}/api/oauth/new",
    token_url=f"{_GOWALLA_API}/api/oauth/token",
)


class GowallaClient:
    """Gowalla API client; identifies the current user by username."""

    def __init__(
        self,
        api_key: str,
        access_token: OAuthToken,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.access_token = access_token
        self._transport = transport
        self._profile: Optional[Dict[str, Any]] = None

    async def _get(self, path: str) -> Dict[str, Any]:
        response = await provider_request(
            "GET",
            f"{_GOWALLA_API}{path}",
            provider="gowalla",
            transport=self._transport,
            reject_client_errors=True,
            params={"oauth_token": self.access_token.value},
            headers={"Accept": "application/json", "X-Gowalla-API-Key": self.api_key},
            follow_redirects=True,
        )
        return response.json()

    async def get_profile(self) -> Dict[str, Any]:
        """The current user, fetched once per client."""
        if self._profile is None:
            self._profile = await self._get("/users/me")
        return self._profile

    async def get_profile_id(self) -> str:
        return (await self.get_profile())["username"]

    def get_profile_url(self, profile_id: str) -> str:
        return f"{_GOWALLA_WEB}/users/{profile_id}"


class GowallaClientFactory(ServiceClientFactory[GowallaClient]):
    def __init__(self, api_key: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._api_key = api_key
        self._transport = transport

    def create_client(self, access_token: OAuthToken) -> GowallaClient:
        return GowallaClient(self._api_key, access_token, transport=self._transport)

    async def fetch_provider_account_id(self, client: GowallaClient) -> str:
        return await client.get_profile_id()

    async def fetch_profile_url(self, client: GowallaClient) -> Optional[str]:
        return client.get_profile_url(await client.get_profile_id())


def is_configured() -> bool:
    return bool(config.gowalla_api_key and config.gowalla_api_secret)


def build_gowalla_provider(
    store: ConnectionStore,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceProvider[GowallaClient]:
    provider_config = ProviderConfig(
        name="gowalla",
        display_name="Gowalla",
        api_key=config.gowalla_api_key,
        api_secret=config.gowalla_api_secret,
        oauth_version=OAuthVersion.TWO,
        icon="📍",
    )
    return ServiceProvider(
        provider_config,
        exchanger=OAuth2TokenExchanger(provider_config, GOWALLA_ENDPOINTS, transport=transport),
        url_builder=AuthorizationUrlBuilder(provider_config, GOWALLA_ENDPOINTS),
        store=store,
        client_factory=GowallaClientFactory(provider_config.api_key, transport),
    )
