"""
OAuth 1.0 request signing (RFC 5849, HMAC-SHA1).

Used by the OAuth1 token exchanger for the request-token and access-token
calls, and by OAuth1 API clients to sign authenticated requests.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from typing import Dict, Mapping, Optional
from urllib.parse import parse_qsl, quote, urlsplit, urlunsplit


def percent_encode(value: str) -> str:
    """RFC 3986 encoding: everything except A-Z a-z 0-9 - . _ ~"""
    return quote(str(value), safe="~")


def normalize_url(url: str) -> str:
    """Base string URI: scheme and host lowercased, no query or fragment."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", "", ""))


def signature_base_string(method: str, url: str, params: Mapping[str, str]) -> str:
    """``METHOD&URL&NORMALIZED_PARAMS``, each part percent-encoded."""
    query = dict(parse_qsl(urlsplit(url).query))
    merged = {**query, **params}
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in merged.items())
    param_str = "&".join(f"{k}={v}" for k, v in encoded)
    return "&".join(
        [method.upper(), percent_encode(normalize_url(url)), percent_encode(param_str)]
    )


def sign_hmac_sha1(base_string: str, consumer_secret: str, token_secret: str = "") -> str:
    key = f"{percent_encode(consumer_secret)}&{percent_encode(token_secret)}"
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("utf-8")


def authorization_header(oauth_params: Mapping[str, str]) -> str:
    items = sorted(oauth_params.items())
    return "OAuth " + ", ".join(f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in items)


class OAuth1Signer:
    """Builds signed ``Authorization`` headers for one consumer."""

    def __init__(self, consumer_key: str, consumer_secret: str) -> None:
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret

    def _nonce(self) -> str:
        return secrets.token_urlsafe(32)

    def _timestamp(self) -> str:
        return str(int(time.time()))

    def oauth_params(self, token: Optional[str] = None, **extra: str) -> Dict[str, str]:
        params = {
            "oauth_consumer_key": self.consumer_key,
            "oauth_signature_method": "HMAC-SHA1",
            "oauth_timestamp": self._timestamp(),
            "oauth_nonce": self._nonce(),
            "oauth_version": "1.0",
        }
        if token:
            params["oauth_token"] = token
        params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def sign(
        self,
        method: str,
        url: str,
        *,
        token: Optional[str] = None,
        token_secret: str = "",
        body_params: Optional[Mapping[str, str]] = None,
        **extra: str,
    ) -> str:
        """Return the ``Authorization`` header value for the request."""
        oauth_params = self.oauth_params(token, **extra)
        base = signature_base_string(method, url, {**(body_params or {}), **oauth_params})
        oauth_params["oauth_signature"] = sign_hmac_sha1(base, self.consumer_secret, token_secret)
        return authorization_header(oauth_params)
