"""
Signed, expiring payloads.

Payloads are base64-encoded JSON signed with HMAC-SHA256. They carry the
OAuth2 ``state``, the OAuth1 request-token cookie and account bearer tokens,
so none of that needs server-side session storage.
"""

from __future__ import annotations

import binascii
import hashlib
import hmac
import json
import time
from base64 import urlsafe_b64decode, urlsafe_b64encode
from typing import Any, Dict


class InvalidSignedPayload(ValueError):
    pass


def sign_payload(payload: Dict[str, Any], secret: str, ttl_seconds: int) -> str:
    """Return ``<b64 json>.<hex sig>`` with an ``exp`` claim added."""
    body = dict(payload, exp=int(time.time()) + ttl_seconds)
    raw = json.dumps(body, separators=(",", ":")).encode()
    sig = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    return urlsafe_b64encode(raw).decode() + "." + sig


def verify_payload(token: str, secret: str) -> Dict[str, Any]:
    """
    Verify signature and expiry and return the payload.

    Raises ``InvalidSignedPayload`` on any failure.
    """
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise InvalidSignedPayload("bad format")
    try:
        raw = urlsafe_b64decode(parts[0])
    except (binascii.Error, ValueError) as exc:
        raise InvalidSignedPayload("bad encoding") from exc
    expected_sig = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(parts[1], expected_sig):
        raise InvalidSignedPayload("bad signature")
    payload = json.loads(raw)
    if payload.get("exp", 0) < time.time():
        raise InvalidSignedPayload("expired")
    return payload
