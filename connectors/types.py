"""
Value types shared by every connector component.

All models are frozen: tokens and connections are never mutated in place,
a reconnect produces a new record.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

# Local account identifiers are opaque strings chosen at the boundary.
AccountId = str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class OAuthVersion(str, Enum):
    """Selects which handshake a provider performs."""

    ONE = "1.0"
    ONE_A = "1.0a"
    TWO = "2.0"

    @property
    def is_oauth1(self) -> bool:
        return self is not OAuthVersion.TWO


class OAuthToken(BaseModel):
    """
    An OAuth credential.

    The same shape serves request tokens (OAuth1, unauthorized) and access
    tokens. ``secret`` is empty for OAuth2.
    """

    model_config = ConfigDict(frozen=True)

    value: str
    secret: str = ""
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def expiry_in_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) >= self.expires_at

    def __repr__(self) -> str:
        # keep credentials out of logs and tracebacks
        return f"OAuthToken(value='{self.value[:4]}…', expires_at={self.expires_at!r})"


class AuthorizedRequestToken(BaseModel):
    """A request token the user has approved, plus the callback verifier."""

    model_config = ConfigDict(frozen=True)

    request_token: OAuthToken
    verifier: Optional[str] = None

    @property
    def value(self) -> str:
        return self.request_token.value


class AccountConnection(BaseModel):
    """A persisted link between a local account and one remote account."""

    model_config = ConfigDict(frozen=True)

    account_id: AccountId
    provider_name: str
    provider_account_id: str
    access_token: OAuthToken
    profile_url: Optional[str] = None
    connected_at: datetime = Field(default_factory=utcnow)

    @field_validator("connected_at")
    @classmethod
    def connected_at_in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def key(self) -> tuple:
        """Uniqueness key within a store."""
        return (self.provider_name, self.account_id, self.provider_account_id)


class ProviderConfig(BaseModel):
    """Static provider metadata, fixed when the provider is built."""

    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    api_key: str
    api_secret: SecretStr = SecretStr("")
    app_id: Optional[int] = None
    oauth_version: OAuthVersion
    scope: Optional[str] = None
    icon: str = "🔗"


class ProviderEndpoints(BaseModel):
    """Handshake endpoints. OAuth1 uses the request/access URLs, OAuth2 the token URL."""

    model_config = ConfigDict(frozen=True)

    authorize_url: str
    request_token_url: Optional[str] = None
    access_token_url: Optional[str] = None
    token_url: Optional[str] = None
