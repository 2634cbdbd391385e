"""
Connector API routes — start a connection, handle the provider callback,
list connections, disconnect.

Route prefix: /api/v1/connectors
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse

from config.settings import config
from connectors.dependencies import get_current_account_id, get_registry
from connectors.errors import (
    ConnectorError,
    DuplicateConnection,
    HandshakeError,
    InvalidCredential,
    NotConnected,
    ProviderUnreachable,
    TokenMisuseError,
    UnsupportedOperation,
)
from connectors.provider import ServiceProvider
from connectors.registry import ConnectorRegistry
from connectors.signing import InvalidSignedPayload, sign_payload, verify_payload
from connectors.types import AccountConnection, AuthorizedRequestToken, OAuthToken

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connectors"])

_STATUS_BY_ERROR = [
    (NotConnected, status.HTTP_404_NOT_FOUND),
    (DuplicateConnection, status.HTTP_409_CONFLICT),
    (TokenMisuseError, status.HTTP_410_GONE),
    (ProviderUnreachable, status.HTTP_502_BAD_GATEWAY),
    (UnsupportedOperation, status.HTTP_400_BAD_REQUEST),
    (InvalidCredential, status.HTTP_400_BAD_REQUEST),
    (HandshakeError, status.HTTP_400_BAD_REQUEST),
]


def _to_http(exc: ConnectorError) -> HTTPException:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


def _request_token_cookie(provider: str) -> str:
    return f"{provider}_request_token"


def _get_provider(registry: ConnectorRegistry, name: str) -> ServiceProvider:
    provider = registry.get(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{name}' not found or not configured",
        )
    return provider


def _connection_view(conn: AccountConnection) -> Dict[str, Any]:
    """Public view of a connection; credentials are never returned."""
    return {
        "provider": conn.provider_name,
        "provider_account_id": conn.provider_account_id,
        "profile_url": conn.profile_url,
        "connected_at": conn.connected_at.isoformat(),
    }


# ── Routes ─────────────────────────────────────────────────────────────


@router.get("/providers")
async def list_providers(registry: ConnectorRegistry = Depends(get_registry)) -> List[dict]:
    """
    List all registered providers.
    No auth required; used by frontends to show available connectors.
    """
    return registry.list_providers()


@router.get("/connections")
async def list_connections(
    account_id: str = Depends(get_current_account_id),
    registry: ConnectorRegistry = Depends(get_registry),
) -> List[dict]:
    """List the account's connections across every provider."""
    views = []
    for provider in registry.providers():
        views.extend(_connection_view(c) for c in await provider.get_connections(account_id))
    return views


@router.post("/{provider}/connect")
async def start_connect(
    provider: str,
    account_id: str = Depends(get_current_account_id),
    registry: ConnectorRegistry = Depends(get_registry),
) -> JSONResponse:
    """
    Begin the handshake and return the URL to send the user to.

    OAuth1 providers get a request token now; it travels back to the
    callback in a signed cookie together with the account id. OAuth2
    providers carry the account id in the signed ``state`` parameter.
    """
    service = _get_provider(registry, provider)
    callback_url = config.callback_url(provider)
    ttl = config.oauth_state_ttl_seconds

    try:
        if service.oauth_version.is_oauth1:
            request_token = await service.fetch_new_request_token(callback_url)
            authorize_url = service.build_authorize_url(
                request_token.value, callback_url=callback_url
            )
            expires_at = request_token.expires_at
            cookie = sign_payload(
                {
                    "account_id": account_id,
                    "token": request_token.value,
                    "secret": request_token.secret,
                    "token_exp": expires_at.timestamp() if expires_at else None,
                },
                config.oauth_state_secret,
                ttl,
            )
            response = JSONResponse({"authorize_url": authorize_url, "provider": provider})
            response.set_cookie(
                _request_token_cookie(provider),
                cookie,
                max_age=ttl,
                httponly=True,
                samesite="lax",
            )
            return response

        state = sign_payload({"account_id": account_id}, config.oauth_state_secret, ttl)
        authorize_url = service.build_authorize_url(callback_url=callback_url, state=state)
    except ConnectorError as exc:
        logger.warning("Could not start %s connection for %s: %s", provider, account_id, exc)
        raise _to_http(exc) from exc
    return JSONResponse({"authorize_url": authorize_url, "provider": provider})


def _read_signed(value: Optional[str], what: str, *required: str) -> Dict[str, Any]:
    if not value:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Missing OAuth {what}")
    try:
        payload = verify_payload(value, config.oauth_state_secret)
    except InvalidSignedPayload as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid or expired OAuth {what}: {exc}",
        ) from exc
    # state and cookie share a secret
    missing = [key for key in required if key not in payload]
    if missing:
        raise HTTPException(
            status.HTTP_400_BAD_REQUEST, f"Malformed OAuth {what}: missing {', '.join(missing)}"
        )
    return payload


@router.get("/{provider}/callback")
async def oauth_callback(
    provider: str,
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    oauth_token: Optional[str] = Query(None),
    oauth_verifier: Optional[str] = Query(None),
    denied: Optional[str] = Query(None),
    registry: ConnectorRegistry = Depends(get_registry),
) -> JSONResponse:
    """
    The provider redirects here after the user decides.

    Completes the handshake, stores the connection and returns it.
    """
    service = _get_provider(registry, provider)

    try:
        if service.oauth_version.is_oauth1:
            payload = _read_signed(
                request.cookies.get(_request_token_cookie(provider)),
                "request-token cookie",
                "account_id",
                "token",
                "secret",
            )
            if denied or not oauth_token:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "Authorization was not granted")
            if oauth_token != payload["token"]:
                raise HTTPException(status.HTTP_400_BAD_REQUEST, "Request token mismatch")
            token_exp = payload.get("token_exp")
            authorized = AuthorizedRequestToken(
                request_token=OAuthToken(
                    value=payload["token"],
                    secret=payload["secret"],
                    expires_at=(
                        datetime.fromtimestamp(token_exp, tz=timezone.utc) if token_exp else None
                    ),
                ),
                verifier=oauth_verifier,
            )
            account_id = payload["account_id"]
            connection = await service.connect_with_token(account_id, authorized)
        else:
            payload = _read_signed(state, "state", "account_id")
            if error or not code:
                raise HTTPException(
                    status.HTTP_400_BAD_REQUEST, f"Authorization was not granted: {error or 'no code'}"
                )
            account_id = payload["account_id"]
            connection = await service.connect_with_code(
                account_id, config.callback_url(provider), code
            )
    except ConnectorError as exc:
        logger.error("OAuth callback failed for %s: %s", provider, exc)
        raise _to_http(exc) from exc

    logger.info(
        "OAuth connected: account=%s provider=%s remote=%s",
        account_id,
        provider,
        connection.provider_account_id,
    )
    response = JSONResponse(_connection_view(connection), status_code=status.HTTP_201_CREATED)
    if service.oauth_version.is_oauth1:
        response.delete_cookie(_request_token_cookie(provider))
    return response


@router.delete("/{provider}")
async def disconnect_all(
    provider: str,
    account_id: str = Depends(get_current_account_id),
    registry: ConnectorRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Sever every connection the account holds with the provider."""
    service = _get_provider(registry, provider)
    await service.disconnect(account_id)
    return {"status": "disconnected", "provider": provider}


@router.delete("/{provider}/{provider_account_id}")
async def disconnect_one(
    provider: str,
    provider_account_id: str,
    account_id: str = Depends(get_current_account_id),
    registry: ConnectorRegistry = Depends(get_registry),
) -> Dict[str, Any]:
    """Sever one specific connection."""
    service = _get_provider(registry, provider)
    await service.disconnect(account_id, provider_account_id)
    return {
        "status": "disconnected",
        "provider": provider,
        "provider_account_id": provider_account_id,
    }
