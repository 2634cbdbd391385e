"""
Connector exceptions.

Every failure of a connection operation surfaces as one of these. Only
``ProviderUnreachable`` is worth retrying with the same inputs; handshake
failures require restarting the flow.
"""

from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    """Base exception for connection lifecycle failures."""

    retryable: bool = False

    def __init__(self, message: str, *, provider: Optional[str] = None) -> None:
        self.message = message
        self.provider = provider
        super().__init__(f"[{provider}] {message}" if provider else message)


class ProviderUnreachable(ConnectorError):
    """Network failure, timeout or 5xx from the provider."""

    retryable = True


class HandshakeError(ConnectorError):
    """The provider refused a step of the handshake."""


class ProviderRejected(HandshakeError):
    """The provider returned an error or a malformed response."""


class InvalidGrant(HandshakeError):
    """OAuth2 code is invalid, already used, or the redirect URI mismatches."""


class AuthorizationNotGranted(HandshakeError):
    """The user never approved the OAuth1 request token."""


class TokenMisuseError(ConnectorError):
    """A one-shot credential was used outside its lifetime."""


class TokenExpired(TokenMisuseError):
    """The temporary request token aged out."""


class TokenAlreadyConsumed(TokenMisuseError):
    """The request token was already exchanged."""


class DuplicateConnection(ConnectorError):
    """The remote identity is already linked to this account."""


class NotConnected(ConnectorError):
    """No stored connection matches the lookup."""


class UnsupportedOperation(ConnectorError):
    """The operation does not apply to the provider's OAuth version."""


class InvalidCredential(ConnectorError):
    """The credential does not have the shape a client needs."""
