"""
FastAPI dependencies for connector routes.

Local accounts are identified by an HMAC-signed bearer token. Issuing those
tokens belongs to whatever authenticates accounts; ``issue_account_token``
exists for that layer and for tests.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import config
from connectors.registry import ConnectorRegistry
from connectors.signing import InvalidSignedPayload, sign_payload, verify_payload
from connectors.types import AccountId

_bearer_scheme = HTTPBearer()


def issue_account_token(account_id: AccountId) -> str:
    return sign_payload(
        {"account_id": account_id},
        config.account_token_secret,
        config.account_token_expiry_seconds,
    )


async def get_current_account_id(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
) -> AccountId:
    """Verify the bearer token and return the local account id."""
    try:
        payload = verify_payload(credentials.credentials, config.account_token_secret)
    except InvalidSignedPayload as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        ) from exc
    return payload["account_id"]


def get_registry() -> ConnectorRegistry:
    return ConnectorRegistry()
