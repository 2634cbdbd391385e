"""
Token exchangers — the protocol-specific half of the connect handshake.

``OAuth1TokenExchanger`` runs request-token → authorize → access-token,
``OAuth2TokenExchanger`` runs authorization-code → access-token. Both talk
to the provider with a fresh ``httpx.AsyncClient`` per call, bounded by
``config.http_timeout_seconds``, so one stalled provider never holds up
another account's handshake.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Dict, Optional
from urllib.parse import parse_qsl

import httpx

from config.settings import config
from connectors.errors import (
    AuthorizationNotGranted,
    InvalidGrant,
    ProviderRejected,
    ProviderUnreachable,
    TokenAlreadyConsumed,
    TokenExpired,
    UnsupportedOperation,
)
from connectors.http import provider_request
from connectors.oauth1 import OAuth1Signer
from connectors.types import (
    AuthorizedRequestToken,
    OAuthToken,
    OAuthVersion,
    ProviderConfig,
    ProviderEndpoints,
    utcnow,
)

logger = logging.getLogger(__name__)


def _lifetime_seconds(raw, field: str, provider: str) -> int:
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ProviderRejected(f"Malformed {field}: {raw!r}", provider=provider) from exc


class TokenExchanger(ABC):
    """Performs the handshake calls for one provider."""

    def __init__(
        self,
        provider: ProviderConfig,
        endpoints: ProviderEndpoints,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.provider = provider
        self.endpoints = endpoints
        self._transport = transport
        self._timeout = timeout if timeout is not None else config.http_timeout_seconds

    async def _post(self, url: str, **kwargs) -> httpx.Response:
        """POST to the provider; 4xx responses come back for interpretation."""
        return await provider_request(
            "POST",
            url,
            provider=self.provider.name,
            transport=self._transport,
            timeout=self._timeout,
            **kwargs,
        )

    @abstractmethod
    async def fetch_request_credential(self, callback_url: Optional[str] = None) -> OAuthToken:
        """Obtain an unauthorized request token (OAuth1 only)."""
        ...

    @abstractmethod
    async def exchange_for_access_token(self, authorized: AuthorizedRequestToken) -> OAuthToken:
        """Trade an authorized request token for an access token (OAuth1)."""
        ...

    @abstractmethod
    async def exchange_code_for_access_token(self, redirect_uri: str, code: str) -> OAuthToken:
        """Trade an authorization code for an access token (OAuth2)."""
        ...


# ── OAuth 1.0 / 1.0a ────────────────────────────────────────────────────

_CONSUMED_PROBLEMS = {"token_used", "token_revoked"}
_EXPIRED_PROBLEMS = {"token_expired"}


class OAuth1TokenExchanger(TokenExchanger):
    """Three-legged OAuth 1.0 / 1.0a handshake."""

    def __init__(self, provider: ProviderConfig, endpoints: ProviderEndpoints, **kwargs) -> None:
        super().__init__(provider, endpoints, **kwargs)
        if not provider.oauth_version.is_oauth1:
            raise ValueError(f"{provider.name} is not an OAuth1 provider")
        self.signer = OAuth1Signer(provider.api_key, provider.api_secret.get_secret_value())
        # request-token value -> monotonic deadline after which the entry is dropped
        self._consumed: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _parse_token_response(self, response: httpx.Response, step: str) -> Dict[str, str]:
        params = dict(parse_qsl(response.text))
        if "oauth_token" not in params or "oauth_token_secret" not in params:
            logger.error("Malformed %s response from %s", step, self.provider.name)
            raise ProviderRejected(f"Malformed {step} response", provider=self.provider.name)
        return params

    async def fetch_request_credential(self, callback_url: Optional[str] = None) -> OAuthToken:
        url = self.endpoints.request_token_url
        extra = {}
        if self.provider.oauth_version is OAuthVersion.ONE_A:
            extra["oauth_callback"] = callback_url or "oob"
        header = self.signer.sign("POST", url, **extra)

        logger.info("Requesting OAuth1 request token from %s", self.provider.name)
        response = await self._post(
            url,
            headers={
                "Authorization": header,
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )
        if response.status_code >= 400:
            raise ProviderRejected(
                f"Request token refused ({response.status_code}): {response.text}",
                provider=self.provider.name,
            )
        params = self._parse_token_response(response, "request token")

        ttl = _lifetime_seconds(
            params.get("oauth_expires_in") or config.request_token_ttl_seconds,
            "oauth_expires_in",
            self.provider.name,
        )
        return OAuthToken(
            value=params["oauth_token"],
            secret=params["oauth_token_secret"],
            expires_at=utcnow() + timedelta(seconds=ttl),
        )

    def _claim(self, request_token: OAuthToken) -> None:
        """Mark a request token as in use; fail if it already was."""
        now = time.monotonic()
        # the entry must outlive the token itself
        keep_for = float(config.request_token_ttl_seconds)
        if request_token.expires_at is not None:
            keep_for = max(keep_for, (request_token.expires_at - utcnow()).total_seconds())
        with self._lock:
            for stale in [k for k, deadline in self._consumed.items() if deadline < now]:
                del self._consumed[stale]
            if request_token.value in self._consumed:
                raise TokenAlreadyConsumed(
                    "Request token has already been exchanged", provider=self.provider.name
                )
            self._consumed[request_token.value] = now + keep_for

    def _release(self, value: str) -> None:
        with self._lock:
            self._consumed.pop(value, None)

    def _raise_for_problem(self, response: httpx.Response) -> None:
        params = dict(parse_qsl(response.text))
        problem = params.get("oauth_problem", "")
        detail = f"Access token refused ({response.status_code}): {problem or response.text}"
        if problem in _CONSUMED_PROBLEMS:
            raise TokenAlreadyConsumed(detail, provider=self.provider.name)
        if problem in _EXPIRED_PROBLEMS:
            raise TokenExpired(detail, provider=self.provider.name)
        if response.status_code == 401 or problem:
            raise AuthorizationNotGranted(detail, provider=self.provider.name)
        raise ProviderRejected(detail, provider=self.provider.name)

    async def exchange_for_access_token(self, authorized: AuthorizedRequestToken) -> OAuthToken:
        request_token = authorized.request_token
        if request_token.is_expired():
            raise TokenExpired("Request token has expired", provider=self.provider.name)
        if self.provider.oauth_version is OAuthVersion.ONE_A and not authorized.verifier:
            raise AuthorizationNotGranted(
                "No oauth_verifier: the user did not approve the request",
                provider=self.provider.name,
            )

        self._claim(request_token)
        url = self.endpoints.access_token_url
        header = self.signer.sign(
            "POST",
            url,
            token=request_token.value,
            token_secret=request_token.secret,
            oauth_verifier=authorized.verifier,
        )

        logger.info("Exchanging OAuth1 request token with %s", self.provider.name)
        try:
            response = await self._post(
                url,
                headers={
                    "Authorization": header,
                    "Content-Type": "application/x-www-form-urlencoded",
                },
            )
        except ProviderUnreachable:
            # the provider never saw the token, so the caller may retry it
            self._release(request_token.value)
            raise
        if response.status_code >= 400:
            self._raise_for_problem(response)
        params = self._parse_token_response(response, "access token")
        return OAuthToken(value=params["oauth_token"], secret=params["oauth_token_secret"])

    async def exchange_code_for_access_token(self, redirect_uri: str, code: str) -> OAuthToken:
        raise UnsupportedOperation(
            "Authorization codes are an OAuth2 concept", provider=self.provider.name
        )


# ── OAuth 2 ─────────────────────────────────────────────────────────────


class OAuth2TokenExchanger(TokenExchanger):
    """Authorization-code grant."""

    async def fetch_request_credential(self, callback_url: Optional[str] = None) -> OAuthToken:
        raise UnsupportedOperation(
            "OAuth2 providers do not issue request tokens", provider=self.provider.name
        )

    async def exchange_for_access_token(self, authorized: AuthorizedRequestToken) -> OAuthToken:
        raise UnsupportedOperation(
            "OAuth2 providers do not issue request tokens", provider=self.provider.name
        )

    async def exchange_code_for_access_token(self, redirect_uri: str, code: str) -> OAuthToken:
        logger.info("Exchanging OAuth2 authorization code with %s", self.provider.name)
        response = await self._post(
            self.endpoints.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self.provider.api_key,
                "client_secret": self.provider.api_secret.get_secret_value(),
            },
            headers={"Accept": "application/json"},
        )
        try:
            token_data = response.json()
        except ValueError:
            token_data = dict(parse_qsl(response.text))
        if not isinstance(token_data, dict):
            raise ProviderRejected(
                "Token response is not an object", provider=self.provider.name
            )

        # some providers (GitHub) report grant errors with a 200
        if "error" in token_data:
            raise InvalidGrant(
                f"{token_data.get('error_description') or token_data['error']}",
                provider=self.provider.name,
            )
        if response.status_code >= 400:
            raise ProviderRejected(
                f"Token endpoint answered {response.status_code}", provider=self.provider.name
            )
        if not token_data.get("access_token"):
            raise ProviderRejected("Token response has no access_token", provider=self.provider.name)

        expires_at = None
        if token_data.get("expires_in"):
            lifetime = _lifetime_seconds(token_data["expires_in"], "expires_in", self.provider.name)
            expires_at = utcnow() + timedelta(seconds=lifetime)
        return OAuthToken(value=token_data["access_token"], expires_at=expires_at)
