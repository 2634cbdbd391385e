"""
ServiceClientFactory — builds the provider's typed API client (S).

Each provider binds one concrete factory; the facade uses it both to hand
out clients and to ask the provider who the connected user is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from connectors.errors import InvalidCredential
from connectors.types import OAuthToken

S = TypeVar("S")


class ServiceClientFactory(ABC, Generic[S]):
    """Abstract factory for an authorized provider API client."""

    # OAuth1 clients sign every request and so need the token secret too.
    requires_secret: bool = False

    def validate(self, access_token: OAuthToken) -> None:
        """Raise ``InvalidCredential`` unless the token can back a client."""
        if not access_token.value or not access_token.value.strip():
            raise InvalidCredential("Access token value is empty")
        if self.requires_secret and not access_token.secret:
            raise InvalidCredential("OAuth1 access token has no secret")

    def build(self, access_token: OAuthToken) -> S:
        """Construct S for the credential. No network call."""
        self.validate(access_token)
        return self.create_client(access_token)

    @abstractmethod
    def create_client(self, access_token: OAuthToken) -> S:
        ...

    @abstractmethod
    async def fetch_provider_account_id(self, client: S) -> str:
        """The connected user's stable id in the provider's system."""
        ...

    async def fetch_profile_url(self, client: S) -> Optional[str]:
        """Link to the user's public profile, if the provider has one."""
        return None
