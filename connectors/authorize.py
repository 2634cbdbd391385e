"""
AuthorizationUrlBuilder — where to send the user to approve a connection.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from connectors.errors import InvalidCredential, UnsupportedOperation
from connectors.types import OAuthVersion, ProviderConfig, ProviderEndpoints


class AuthorizationUrlBuilder:
    """Pure construction of the provider's authorize URL; no network calls."""

    def __init__(self, provider: ProviderConfig, endpoints: ProviderEndpoints) -> None:
        self.provider = provider
        self.endpoints = endpoints

    def _join(self, params: dict) -> str:
        base = self.endpoints.authorize_url
        separator = "&" if "?" in base else "?"
        return f"{base}{separator}{urlencode(params)}"

    def build_authorize_url(
        self,
        request_token: Optional[str] = None,
        *,
        callback_url: Optional[str] = None,
        state: Optional[str] = None,
    ) -> str:
        """
        Build the absolute URL to redirect the user to.

        Parameters
        ----------
        request_token : str, optional
            OAuth1 request-token value. Must be omitted for OAuth2.
        callback_url : str, optional
            OAuth 1.0 passes it here (1.0a registers it with the request
            token); OAuth2 sends it as ``redirect_uri``.
        state : str, optional
            Opaque OAuth2 state echoed back on the callback.
        """
        version = self.provider.oauth_version
        if version.is_oauth1:
            if not request_token:
                raise InvalidCredential(
                    "OAuth1 authorization needs a request token", provider=self.provider.name
                )
            params = {"oauth_token": request_token}
            if version is OAuthVersion.ONE and callback_url:
                params["oauth_callback"] = callback_url
            return self._join(params)

        if request_token:
            raise UnsupportedOperation(
                "OAuth2 authorization does not take a request token", provider=self.provider.name
            )
        params = {"client_id": self.provider.api_key, "response_type": "code"}
        if callback_url:
            params["redirect_uri"] = callback_url
        if self.provider.scope:
            params["scope"] = self.provider.scope
        if state:
            params["state"] = state
        return self._join(params)
