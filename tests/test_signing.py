"""
Tests for signed payloads and at-rest token encryption.
"""

import time
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet

from config.settings import config
from connectors import encryption
from connectors.signing import InvalidSignedPayload, sign_payload, verify_payload


class TestSignedPayload:
    def test_round_trip(self):
        token = sign_payload({"account_id": "A42"}, "s3cret", 60)
        payload = verify_payload(token, "s3cret")
        assert payload["account_id"] == "A42"
        assert payload["exp"] > time.time()

    def test_wrong_secret(self):
        token = sign_payload({"account_id": "A42"}, "s3cret", 60)
        with pytest.raises(InvalidSignedPayload, match="bad signature"):
            verify_payload(token, "other")

    def test_tampered_body(self):
        token = sign_payload({"account_id": "A42"}, "s3cret", 60)
        forged = sign_payload({"account_id": "B7"}, "s3cret", 60).split(".")[0]
        with pytest.raises(InvalidSignedPayload):
            verify_payload(forged + "." + token.split(".")[1], "s3cret")

    def test_expired(self):
        token = sign_payload({"account_id": "A42"}, "s3cret", 60)
        with patch("connectors.signing.time.time", return_value=time.time() + 120):
            with pytest.raises(InvalidSignedPayload, match="expired"):
                verify_payload(token, "s3cret")

    @pytest.mark.parametrize("token", ["", "no-dot", "!!!.abc"])
    def test_malformed(self, token):
        with pytest.raises(InvalidSignedPayload):
            verify_payload(token, "s3cret")


class TestTokenEncryption:
    def setup_method(self):
        encryption.reset_cipher()

    def teardown_method(self):
        encryption.reset_cipher()

    def test_disabled_without_key(self, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", "")
        assert encryption.is_encryption_enabled() is False
        assert encryption.encrypt_token("tok") == "tok"
        assert encryption.decrypt_token("tok") == "tok"

    def test_round_trip_with_key(self, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", Fernet.generate_key().decode())
        ciphertext = encryption.encrypt_token("tok")
        assert ciphertext != "tok"
        assert encryption.decrypt_token(ciphertext) == "tok"
        # empty secrets stay empty
        assert encryption.encrypt_token("") == ""

    def test_bad_key_disables(self, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", "not-a-fernet-key")
        assert encryption.is_encryption_enabled() is False

    def test_legacy_plaintext_passes_through(self, monkeypatch):
        monkeypatch.setattr(config, "token_encryption_key", Fernet.generate_key().decode())
        assert encryption.decrypt_token("stored-before-key") == "stored-before-key"

    def test_digest_is_stable(self):
        assert encryption.token_digest("tok") == encryption.token_digest("tok")
        assert encryption.token_digest("tok") != encryption.token_digest("tok2")
