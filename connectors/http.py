"""
Provider HTTP calls with the connector error mapping applied.
"""

from __future__ import annotations

from typing import Optional

import httpx

from config.settings import config
from connectors.errors import ProviderRejected, ProviderUnreachable


async def provider_request(
    method: str,
    url: str,
    *,
    provider: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    timeout: Optional[float] = None,
    reject_client_errors: bool = False,
    **kwargs,
) -> httpx.Response:
    """
    Send one request to a provider.

    Timeouts, connection failures and 5xx raise ``ProviderUnreachable``.
    With ``reject_client_errors`` any 4xx raises ``ProviderRejected``;
    otherwise 4xx responses are returned for the caller to interpret.
    """
    try:
        async with httpx.AsyncClient(
            timeout=timeout if timeout is not None else config.http_timeout_seconds,
            transport=transport,
        ) as client:
            response = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        raise ProviderUnreachable(f"Timed out calling {url}", provider=provider) from exc
    except httpx.TransportError as exc:
        raise ProviderUnreachable(f"Could not reach {url}: {exc}", provider=provider) from exc

    if response.status_code >= 500:
        raise ProviderUnreachable(f"{url} answered {response.status_code}", provider=provider)
    if reject_client_errors and response.status_code >= 400:
        raise ProviderRejected(
            f"{url} answered {response.status_code}: {response.text[:200]}", provider=provider
        )
    return response
