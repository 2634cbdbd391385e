"""
Tests for OAuth 1.0 request signing (RFC 5849).
"""

import base64
import hashlib
import hmac
from dataclasses import dataclass
from unittest.mock import patch

import pytest

from connectors.oauth1 import (
    OAuth1Signer,
    authorization_header,
    normalize_url,
    percent_encode,
    sign_hmac_sha1,
    signature_base_string,
)


@dataclass
class PercentEncodeCase:
    desc: str
    input_val: str
    expected: str


PERCENT_ENCODE_CASES = [
    PercentEncodeCase("plain ascii", "abc", "abc"),
    PercentEncodeCase("space", "hello world", "hello%20world"),
    PercentEncodeCase("tilde unreserved", "~", "~"),
    PercentEncodeCase("plus sign", "a+b", "a%2Bb"),
    PercentEncodeCase("slash", "foo/bar", "foo%2Fbar"),
    PercentEncodeCase("ampersand and equals", "a=1&b=2", "a%3D1%26b%3D2"),
    PercentEncodeCase("unicode", "naïve", "na%C3%AFve"),
]


@pytest.mark.parametrize("case", PERCENT_ENCODE_CASES, ids=lambda c: c.desc)
def test_percent_encode(case: PercentEncodeCase):
    assert percent_encode(case.input_val) == case.expected


class TestSignatureBaseString:
    def test_method_url_and_sorted_params(self):
        base = signature_base_string("post", "https://api.test/oauth/request_token", {"b": "2", "a": "1"})
        method, url, params = base.split("&")
        assert method == "POST"
        assert url == "https%3A%2F%2Fapi.test%2Foauth%2Frequest_token"
        assert params == "a%3D1%26b%3D2"

    def test_query_string_params_are_signed(self):
        base = signature_base_string("GET", "https://api.test/path?z=26", {"a": "1"})
        assert base.endswith("a%3D1%26z%3D26")
        assert "%3Fz" not in base

    def test_normalize_url_lowercases_host_and_drops_query(self):
        assert normalize_url("HTTPS://Api.Test/Path?x=1#frag") == "https://api.test/Path"


class TestSigning:
    def test_hmac_sha1_matches_manual_computation(self):
        base = "POST&https%3A%2F%2Fapi.test&a%3D1"
        expected = base64.b64encode(
            hmac.new(b"cs&ts", base.encode(), hashlib.sha1).digest()
        ).decode()
        assert sign_hmac_sha1(base, "cs", "ts") == expected

    def test_empty_token_secret_keeps_trailing_ampersand(self):
        base = "GET&x&y"
        expected = base64.b64encode(hmac.new(b"cs&", base.encode(), hashlib.sha1).digest()).decode()
        assert sign_hmac_sha1(base, "cs") == expected

    def test_authorization_header_format(self):
        header = authorization_header({"oauth_token": "a b", "oauth_consumer_key": "k"})
        assert header == 'OAuth oauth_consumer_key="k", oauth_token="a%20b"'


class TestOAuth1Signer:
    def test_sign_includes_token_and_extra_params(self):
        signer = OAuth1Signer("key", "secret")
        header = signer.sign("POST", "https://api.test/x", token="tok", oauth_verifier="ver")
        assert header.startswith("OAuth ")
        assert 'oauth_token="tok"' in header
        assert 'oauth_verifier="ver"' in header
        assert 'oauth_signature="' in header

    def test_none_extras_are_omitted(self):
        signer = OAuth1Signer("key", "secret")
        header = signer.sign("POST", "https://api.test/x", oauth_verifier=None)
        assert "oauth_verifier" not in header

    def test_signature_is_deterministic_for_fixed_nonce_and_time(self):
        signer = OAuth1Signer("key", "secret")
        with patch.object(signer, "_nonce", return_value="n"), patch.object(
            signer, "_timestamp", return_value="1"
        ):
            first = signer.sign("GET", "https://api.test/x", token="t", token_secret="ts")
            second = signer.sign("GET", "https://api.test/x", token="t", token_secret="ts")
        assert first == second

    def test_nonces_are_unique(self):
        signer = OAuth1Signer("key", "secret")
        assert len({signer._nonce() for _ in range(50)}) == 50
