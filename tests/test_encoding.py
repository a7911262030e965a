"""Tests for lazuli.util.encoding: base64, HMAC and signed values."""

import hashlib
import hmac

import pytest

from lazuli.config import configure, reset_config
from lazuli.errors import SignatureError
from lazuli.util.encoding import (
    decode_base64,
    decode_with_secret,
    encode_base64,
    encode_with_secret,
    hmac_sha1,
)


@pytest.fixture(autouse=True)
def _clean_config(monkeypatch):
    monkeypatch.delenv("LAZULI_ENV", raising=False)
    reset_config()
    yield
    reset_config()


class TestBase64:
    def test_encode_text(self) -> None:
        assert encode_base64("hello") == "aGVsbG8="

    def test_decode(self) -> None:
        assert decode_base64("aGVsbG8=") == b"hello"

    def test_decode_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            decode_base64("not base64!")


class TestHmac:
    def test_matches_stdlib(self) -> None:
        expected = hmac.new(b"key", b"data", hashlib.sha1).digest()
        assert hmac_sha1("key", "data") == expected
        assert len(hmac_sha1(b"key", b"data")) == 20


class TestSignedValues:
    def test_round_trip(self) -> None:
        token = encode_with_secret({"user_id": 3}, "s3cret")
        assert decode_with_secret(token, "s3cret") == {"user_id": 3}

    def test_wrong_secret(self) -> None:
        token = encode_with_secret({"user_id": 3}, "s3cret")
        with pytest.raises(SignatureError):
            decode_with_secret(token, "other")

    def test_tampered_value(self) -> None:
        token = encode_with_secret("admin", "s3cret")
        with pytest.raises(SignatureError):
            decode_with_secret("x" + token, "s3cret")

    def test_secret_from_config(self) -> None:
        configure("development", secret_key="from-config")
        token = encode_with_secret([1, 2])
        assert decode_with_secret(token, "from-config") == [1, 2]

    def test_missing_secret(self) -> None:
        with pytest.raises(SignatureError, match="secret is required"):
            encode_with_secret({"a": 1})
