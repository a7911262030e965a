"""Write a finished Response to the ASGI ``send`` channel."""

import logging

from lazuli._internal.asgi import Send
from lazuli.http.response import Response
from lazuli.server.errors import PLAIN_500

logger = logging.getLogger("lazuli.server")

# 1xx, 204 and 304 never carry a body
_NO_BODY = frozenset({204, 304})


def encode_headers(response: Response, content_length: int) -> list[tuple[bytes, bytes]]:
    """Lowercased raw header pairs: content type, extra headers, cookies, length.

    Raises ``UnicodeEncodeError`` for a header that is not latin-1.
    """
    pairs = [("content-type", response.content_type)]
    pairs.extend((name.lower(), value) for name, value in response.headers)
    pairs.extend(("set-cookie", cookie.to_header_value()) for cookie in response.cookies)
    pairs.append(("content-length", str(content_length)))
    return [(name.encode("latin-1"), value.encode("latin-1")) for name, value in pairs]


def _encode(response: Response) -> tuple[int, list[tuple[bytes, bytes]], bytes]:
    status = response.status
    body = b"" if status < 200 or status in _NO_BODY else response.body_bytes
    return status, encode_headers(response, len(body)), body


async def send_response(response: Response, send: Send, *, head: bool = False) -> None:
    """Send *response* as one start message and one body message.

    A response whose headers cannot be encoded is replaced by a plain 500.
    For a ``HEAD`` request (*head*) the length of the body a ``GET`` would
    get is announced, but no body is sent.
    """
    try:
        status, headers, body = _encode(response)
    except UnicodeEncodeError:
        logger.exception("Response headers are not latin-1 encodable")
        status, headers, body = _encode(PLAIN_500)
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": b"" if head else body})
