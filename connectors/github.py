"""
GitHub — OAuth2 provider binding.

Uses the GitHub OAuth App web flow; the connected user is identified by
the numeric id from ``GET /user``.
"""

from __future__ import annotations

import logging
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

logger = logging.getLogger(__name__)

# GitHub OAuth2 endpoints
_GH_AUTH_URL = "https://github.com/login/oauth/authorize"
_GH_TOKEN_URL = "https://github.com/login/oauth/access_token"
_GH_API = "https://api.github.com"

GITHUB_ENDPOINTS = ProviderEndpoints(authorize_url=_GH_AUTH_URL, token_url=_GH_TOKEN_URL)


class GitHubClient:
    """Minimal GitHub REST client authorized by a user access token."""

    def __init__(
        self,
        access_token: OAuthToken,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.access_token = access_token
        self._transport = transport
        self._profile: Optional[Dict[str, Any]] = None

    async def _get(self, path: str) -> Dict[str, Any]:
        response = await provider_request(
            "GET",
            f"{_GH_API}{path}",
            provider="github",
            transport=self._transport,
            reject_client_errors=True,
            headers={
                "Authorization": f"Bearer {self.access_token.value}",
                "Accept": "application/vnd.github+json",
            },
        )
        return response.json()

    async def get_profile(self) -> Dict[str, Any]:
        if self._profile is None:
            self._profile = await self._get("/user")
        return self._profile

    async def get_profile_id(self) -> str:
        return str((await self.get_profile())["id"])

    async def get_profile_url(self) -> Optional[str]:
        return (await self.get_profile()).get("html_url")


class GitHubClientFactory(ServiceClientFactory[GitHubClient]):
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._transport = transport

    def create_client(self, access_token: OAuthToken) -> GitHubClient:
        return GitHubClient(access_token, transport=self._transport)

    async def fetch_provider_account_id(self, client: GitHubClient) -> str:
        return await client.get_profile_id()

    async def fetch_profile_url(self, client: GitHubClient) -> Optional[str]:
        return await client.get_profile_url()


def is_configured() -> bool:
    return bool(config.github_client_id and config.github_client_secret)


def build_github_provider(
    store: ConnectionStore,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceProvider[GitHubClient]:
    provider_config = ProviderConfig(
        name="github",
        display_name="GitHub",
        api_key=config.github_client_id,
        api_secret=config.github_client_secret,
        oauth_version=OAuthVersion.TWO,
        scope="read:user",
        icon="🐙",
    )
    return ServiceProvider(
        provider_config,
        exchanger=OAuth2TokenExchanger(provider_config, GITHUB_ENDPOINTS, transport=transport),
        url_builder=AuthorizationUrlBuilder(provider_config, GITHUB_ENDPOINTS),
        store=store,
        client_factory=GitHubClientFactory(transport),
    )
