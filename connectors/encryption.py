"""
Token encryption for connection credentials at rest.

Access tokens and OAuth1 token secrets are sealed with Fernet before they
reach ``account_connections``. The key comes from
``config.token_encryption_key`` (``TOKEN_ENCRYPTION_KEY``); without one,
credentials are written as-is and ``main`` logs a warning at startup.
A key can be generated with::

    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"

Fernet ciphertexts are randomised, so lookups by token go through
``token_digest`` instead.
"""

from __future__ import annotations

import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken

from config.settings import config

logger = logging.getLogger(__name__)

_fernet = None
_enabled = False
_initialised = False


def _init_fernet() -> None:
    """Read the key and build the cipher on first use."""
    global _fernet, _enabled, _initialised

    _initialised = True
    key = config.token_encryption_key
    if not key:
        logger.warning(
            "TOKEN_ENCRYPTION_KEY not set: OAuth tokens will be stored as plaintext."
        )
        _enabled = False
        return

    try:
        _fernet = Fernet(key.encode() if isinstance(key, str) else key)
        _enabled = True
        logger.info("Connection credentials will be encrypted at rest")
    except ValueError as exc:
        logger.error("TOKEN_ENCRYPTION_KEY is not a valid Fernet key: %s", exc)
        _enabled = False


def reset_cipher() -> None:
    """Forget the cached cipher so the next call re-reads the key."""
    global _fernet, _enabled, _initialised
    _fernet = None
    _enabled = False
    _initialised = False


def encrypt_token(plaintext: str) -> str:
    """
    Seal a credential before it is written.

    Empty values stay empty so a missing OAuth1 secret round-trips.
    Without a key the value is returned unchanged.
    """
    if not _initialised:
        _init_fernet()

    if not _enabled or _fernet is None or not plaintext:
        return plaintext

    return _fernet.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: str) -> str:
    """
    Open a credential read back from the store.

    If encryption is disabled, returns the input unchanged. Tokens stored
    before encryption was enabled are not valid Fernet tokens and are
    returned as-is.
    """
    if not _initialised:
        _init_fernet()

    if not _enabled or _fernet is None or not ciphertext:
        return ciphertext

    try:
        return _fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        return ciphertext


def token_digest(value: str) -> str:
    """Stable SHA-256 hex digest used to index access tokens."""
    return hashlib.sha256(value.encode()).hexdigest()


def is_encryption_enabled() -> bool:
    """True when a usable key is configured."""
    if not _initialised:
        _init_fernet()
    return _enabled
