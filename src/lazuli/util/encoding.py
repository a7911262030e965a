"""Encoding helpers: base64, HMAC, and signed values.

Signed values go through itsdangerous so that cookies and tokens share one
serialization format::

    token = encode_with_secret({"user_id": 3}, secret)
    decode_with_secret(token, secret)   # {"user_id": 3}
"""

import base64
import hashlib
import hmac
from typing import Any

from itsdangerous import BadSignature, URLSafeSerializer

from lazuli.errors import SignatureError

_SALT = "lazuli.signed"


def encode_base64(data: str | bytes) -> str:
    """Standard base64 of *data* (text is UTF-8 encoded first)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("ascii")


def decode_base64(data: str | bytes) -> bytes:
    """Decode standard base64.

    Raises ``ValueError`` for malformed input.
    """
    return base64.b64decode(data, validate=True)


def hmac_sha1(secret: str | bytes, data: str | bytes) -> bytes:
    """Raw HMAC-SHA1 digest of *data* keyed with *secret*."""
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hmac.new(secret, data, hashlib.sha1).digest()


def _serializer(secret: str | None) -> URLSafeSerializer:
    if not secret:
        from lazuli.config import get_config

        secret = get_config().secret_key
    if not secret:
        msg = "A secret is required to sign values (set AppConfig.secret_key)."
        raise SignatureError(msg)
    return URLSafeSerializer(secret, salt=_SALT)


def encode_with_secret(obj: Any, secret: str | None = None) -> str:
    """Serialize *obj* to JSON and sign it.

    *secret* defaults to the active environment's ``secret_key``.
    """
    return _serializer(secret).dumps(obj)


def decode_with_secret(value: str, secret: str | None = None) -> Any:
    """Verify and decode a value produced by ``encode_with_secret``.

    Raises ``SignatureError`` if the signature does not match.
    """
    try:
        return _serializer(secret).loads(value)
    except BadSignature as exc:
        msg = "invalid signature"
        raise SignatureError(msg) from exc
