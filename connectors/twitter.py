"""
Twitter — OAuth 1.0a provider binding.

Every API request is signed with the consumer credentials and the
connection's access token + secret.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from config.settings import config
from connectors.authorize import AuthorizationUrlBuilder
from connectors.base import ServiceClientFactory
from connectors.exchanger import OAuth1TokenExchanger
from connectors.http import provider_request
from connectors.oauth1 import OAuth1Signer
from connectors.provider import ServiceProvider
from connectors.store import ConnectionStore
from connectors.types import OAuthToken, OAuthVersion, ProviderConfig, ProviderEndpoints

_TW_API = "https://api.twitter.com"

TWITTER_ENDPOINTS = ProviderEndpoints(
    request_token_url=f"{_TW_API}/oauth/request_token",
    authorize_url=f"{_TW_API}/oauth/authorize",
    access_token_url=f"{_TW_API}/oauth/access_token",
)


class TwitterClient:
    """Signed Twitter API client for one connection."""

    def __init__(
        self,
        signer: OAuth1Signer,
        access_token: OAuthToken,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._signer = signer
        self.access_token = access_token
        self._transport = transport
        self._profile: Optional[Dict[str, Any]] = None

    async def _get(self, path: str) -> Dict[str, Any]:
        url = f"{_TW_API}{path}"
        header = self._signer.sign(
            "GET", url, token=self.access_token.value, token_secret=self.access_token.secret
        )
        response = await provider_request(
            "GET",
            url,
            provider="twitter",
            transport=self._transport,
            reject_client_errors=True,
            headers={"Authorization": header},
        )
        return response.json()

    async def verify_credentials(self) -> Dict[str, Any]:
        if self._profile is None:
            self._profile = await self._get("/1.1/account/verify_credentials.json")
        return self._profile

    async def get_profile_id(self) -> str:
        return (await self.verify_credentials())["id_str"]

    async def get_screen_name(self) -> str:
        return (await self.verify_credentials())["screen_name"]


class TwitterClientFactory(ServiceClientFactory[TwitterClient]):
    requires_secret = True

    def __init__(self, signer: OAuth1Signer, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self._signer = signer
        self._transport = transport

    def create_client(self, access_token: OAuthToken) -> TwitterClient:
        return TwitterClient(self._signer, access_token, transport=self._transport)

    async def fetch_provider_account_id(self, client: TwitterClient) -> str:
        return await client.get_profile_id()

    async def fetch_profile_url(self, client: TwitterClient) -> Optional[str]:
        return f"https://twitter.com/{await client.get_screen_name()}"


def is_configured() -> bool:
    return bool(config.twitter_consumer_key and config.twitter_consumer_secret)


def build_twitter_provider(
    store: ConnectionStore,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceProvider[TwitterClient]:
    provider_config = ProviderConfig(
        name="twitter",
        display_name="Twitter",
        api_key=config.twitter_consumer_key,
        api_secret=config.twitter_consumer_secret,
        oauth_version=OAuthVersion.ONE_A,
        icon="🐦",
    )
    exchanger = OAuth1TokenExchanger(provider_config, TWITTER_ENDPOINTS, transport=transport)
    return ServiceProvider(
        provider_config,
        exchanger=exchanger,
        url_builder=AuthorizationUrlBuilder(provider_config, TWITTER_ENDPOINTS),
        store=store,
        client_factory=TwitterClientFactory(exchanger.signer, transport),
    )
