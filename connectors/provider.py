"""
ServiceProvider — the facade callers use to connect accounts to a provider.

Per (account, provider account) pair a connection moves through::

    Unconnected ─fetch_new_request_token─▶ RequestIssued      (OAuth1 only)
    RequestIssued ─connect_with_token────▶ Connected
    Unconnected ─connect_with_code───────▶ Connected          (OAuth2 only)
    Unconnected ─add_connection──────────▶ Connected
    Connected ─disconnect────────────────▶ Unconnected

Request tokens are returned to the caller and held in its session; the
facade itself keeps no per-call state. All durable state lives in the
``ConnectionStore``.
"""

from __future__ import annotations

import logging
from typing import Generic, Optional, Tuple, Union

from connectors.authorize import AuthorizationUrlBuilder
from connectors.base import S, ServiceClientFactory
from connectors.errors import NotConnected, UnsupportedOperation
from connectors.exchanger import TokenExchanger
from connectors.store import ConnectionStore
from connectors.types import (
    AccountConnection,
    AccountId,
    AuthorizedRequestToken,
    OAuthToken,
    OAuthVersion,
    ProviderConfig,
)

logger = logging.getLogger(__name__)


class ServiceProvider(Generic[S]):
    """A service provider that local accounts may connect to and invoke."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        exchanger: TokenExchanger,
        url_builder: AuthorizationUrlBuilder,
        store: ConnectionStore,
        client_factory: ServiceClientFactory[S],
    ) -> None:
        self._config = config
        self._exchanger = exchanger
        self._url_builder = url_builder
        self._store = store
        self._client_factory = client_factory

    # ── Metadata ────────────────────────────────────────────────────────

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def name(self) -> str:
        """Unique slug, e.g. 'twitter'."""
        return self._config.name

    @property
    def display_name(self) -> str:
        return self._config.display_name

    @property
    def api_key(self) -> str:
        """Identifies this application to the provider."""
        return self._config.api_key

    @property
    def app_id(self) -> Optional[int]:
        return self._config.app_id

    @property
    def oauth_version(self) -> OAuthVersion:
        return self._config.oauth_version

    @property
    def icon(self) -> str:
        return self._config.icon

    def _require(self, oauth1: bool, operation: str) -> None:
        if self.oauth_version.is_oauth1 != oauth1:
            raise UnsupportedOperation(
                f"{operation} is not available for OAuth {self.oauth_version.value}",
                provider=self.name,
            )

    # ── Handshake ───────────────────────────────────────────────────────

    async def fetch_new_request_token(self, callback_url: Optional[str] = None) -> OAuthToken:
        """
        Begin an OAuth1 connection by fetching a request token.

        The caller keeps the token in the user's session until the
        provider calls back, then passes it to ``connect_with_token``.
        """
        self._require(True, "fetch_new_request_token")
        token = await self._exchanger.fetch_request_credential(callback_url)
        logger.info("Issued %s request token", self.name)
        return token

    def build_authorize_url(
        self,
        request_token: Optional[str] = None,
        *,
        callback_url: Optional[str] = None,
        state: Optional[str] = None,
    ) -> str:
        return self._url_builder.build_authorize_url(
            request_token, callback_url=callback_url, state=state
        )

    async def connect_with_token(
        self, account_id: AccountId, authorized: AuthorizedRequestToken
    ) -> AccountConnection:
        """
        Complete an OAuth1 connection.

        Exchanges the authorized request token for an access token, asks
        the provider who the user is, and stores the connection. The
        request token cannot be reused afterwards.
        """
        self._require(True, "connect_with_token")
        access_token = await self._exchanger.exchange_for_access_token(authorized)
        return await self._establish(account_id, access_token)

    async def connect_with_code(
        self, account_id: AccountId, redirect_uri: str, code: str
    ) -> AccountConnection:
        """Complete an OAuth2 connection from the authorization code."""
        self._require(False, "connect_with_code")
        access_token = await self._exchanger.exchange_code_for_access_token(redirect_uri, code)
        return await self._establish(account_id, access_token)

    async def _establish(self, account_id: AccountId, access_token: OAuthToken) -> AccountConnection:
        client = self._client_factory.build(access_token)
        provider_account_id = await self._client_factory.fetch_provider_account_id(client)
        profile_url = await self._client_factory.fetch_profile_url(client)
        connection = await self._store.save(
            AccountConnection(
                account_id=account_id,
                provider_name=self.name,
                provider_account_id=provider_account_id,
                access_token=access_token,
                profile_url=profile_url,
            )
        )
        logger.info(
            "Connected account %s to %s as %s", account_id, self.name, provider_account_id
        )
        return connection

    async def add_connection(
        self,
        account_id: AccountId,
        access_token: Union[OAuthToken, str],
        provider_account_id: str,
    ) -> AccountConnection:
        """
        Record a connection established outside this package, for example
        by a JavaScript SDK in the browser.
        """
        if isinstance(access_token, str):
            access_token = OAuthToken(value=access_token)
        self._client_factory.validate(access_token)
        connection = await self._store.save(
            AccountConnection(
                account_id=account_id,
                provider_name=self.name,
                provider_account_id=provider_account_id,
                access_token=access_token,
            )
        )
        logger.info(
            "Recorded %s connection for account %s as %s", self.name, account_id, provider_account_id
        )
        return connection

    # ── Queries ─────────────────────────────────────────────────────────

    async def is_connected(self, account_id: AccountId) -> bool:
        return bool(await self._store.find_all(self.name, account_id))

    async def get_connections(self, account_id: AccountId) -> Tuple[AccountConnection, ...]:
        """All connections the account holds with this provider, earliest first."""
        return await self._store.find_all(self.name, account_id)

    async def _resolve(
        self, account_id: AccountId, provider_account_id: Optional[str] = None
    ) -> AccountConnection:
        connection = await self._store.find_one(self.name, account_id, provider_account_id)
        if connection is None:
            target = f" as {provider_account_id}" if provider_account_id else ""
            raise NotConnected(
                f"Account {account_id} is not connected{target}", provider=self.name
            )
        return connection

    async def get_provider_account_id(self, account_id: AccountId) -> str:
        """The connected user's id in the provider's system."""
        return (await self._resolve(account_id)).provider_account_id

    async def get_connection_by_access_token(self, token_value: str) -> AccountConnection:
        connection = await self._store.find_by_access_token(self.name, token_value)
        if connection is None:
            raise NotConnected("No connection holds that access token", provider=self.name)
        return connection

    # ── Service API ─────────────────────────────────────────────────────

    async def resolve_by_account(self, account_id: AccountId) -> S:
        """
        Client for the account's connection. When the account holds
        several, the earliest-created one is used.
        """
        connection = await self._resolve(account_id)
        return self._client_factory.build(connection.access_token)

    def resolve_by_token(self, access_token: OAuthToken) -> S:
        """Client for an access token; the store is not consulted."""
        return self._client_factory.build(access_token)

    async def resolve_by_account_and_provider_id(
        self, account_id: AccountId, provider_account_id: str
    ) -> S:
        connection = await self._resolve(account_id, provider_account_id)
        return self._client_factory.build(connection.access_token)

    # ── Teardown ────────────────────────────────────────────────────────

    async def disconnect(
        self, account_id: AccountId, provider_account_id: Optional[str] = None
    ) -> None:
        """
        Sever one connection, or all of them when no provider account id
        is given. Has no effect if nothing matches.
        """
        removed = await self._store.delete(self.name, account_id, provider_account_id)
        if removed:
            logger.info("Disconnected %d %s connection(s) for account %s", removed, self.name, account_id)
