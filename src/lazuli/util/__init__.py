"""String, URL and data helpers."""

import json
import re
import unicodedata
from collections.abc import Iterable, Mapping, MutableMapping
from datetime import UTC, datetime
from typing import Any
from urllib.parse import parse_qsl, quote, unquote, urlencode

from lazuli.util.autoload import LazyRegistry, autoload

__all__ = [
    "LazyRegistry",
    "autoload",
    "camelize",
    "encode_query_string",
    "escape",
    "from_json",
    "parse_query_string",
    "slugify",
    "time_ago_in_words",
    "to_json",
    "trim",
    "trim_all",
    "trim_filter",
    "underscore",
    "unescape",
    "uniquify",
]


def unescape(text: str) -> str:
    """URL-unescape *text* (``+`` is a space)."""
    return unquote(text.replace("+", " "))


def escape(text: str) -> str:
    """URL-escape *text*, leaving only unreserved characters."""
    return quote(text, safe="")


def parse_query_string(query: str) -> dict[str, str]:
    """Parse a query string into a dict; the last value of a name wins."""
    return dict(parse_qsl(query.removeprefix("?"), keep_blank_values=True))


def encode_query_string(params: Mapping[str, Any]) -> str:
    """Encode a mapping as a query string.

    ``True`` encodes as a bare key, ``False`` and ``None`` are skipped.
    """
    parts: list[str] = []
    for key, value in params.items():
        if value is None or value is False:
            continue
        if value is True:
            parts.append(escape(str(key)))
        else:
            parts.append(urlencode({key: value}))
    return "&".join(parts)


_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def underscore(text: str) -> str:
    """``CamelCase`` -> ``camel_case``."""
    return _CAMEL_BOUNDARY.sub("_", text).lower()


def camelize(text: str) -> str:
    """``camel_case`` -> ``CamelCase``."""
    return "".join(part[:1].upper() + part[1:] for part in text.split("_"))


def slugify(text: str) -> str:
    """Lowercase ASCII slug with runs of other characters collapsed to ``-``."""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", ascii_text.lower()).strip("-")


def uniquify(items: Iterable[Any]) -> list[Any]:
    """Unique items in first-seen order."""
    seen: list[Any] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


_ASCII_WHITESPACE = " \t\n\r\f\v"


def trim(text: Any) -> str:
    """Strip ASCII whitespace from both ends of ``str(text)``."""
    return str(text).strip(_ASCII_WHITESPACE)


def trim_all(data: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Trim every value of *data* in place and return it."""
    for key, value in data.items():
        data[key] = trim(value)
    return data


_REMOVE = object()


def trim_filter(
    data: MutableMapping[str, Any],
    keys: Iterable[str] | None = None,
    empty: Any = _REMOVE,
) -> MutableMapping[str, Any]:
    """Trim values in place, dropping blank ones.

    Keys not listed in *keys* (when given) are removed. Values that are blank
    after trimming are removed, or replaced with *empty* when provided.
    """
    if keys is not None:
        allowed = set(keys)
        for key in [k for k in data if k not in allowed]:
            del data[key]

    for key in list(data):
        value = trim(data[key])
        if value:
            data[key] = value
        elif empty is _REMOVE:
            del data[key]
        else:
            data[key] = empty
    return data


def _strip_recursion(value: Any, parents: frozenset[int]) -> Any:
    if not isinstance(value, (dict, list, tuple)):
        return value
    if id(value) in parents:
        return None
    inner = parents | {id(value)}
    if isinstance(value, dict):
        return {key: _strip_recursion(item, inner) for key, item in value.items()}
    return [_strip_recursion(item, inner) for item in value]


def to_json(obj: Any) -> str:
    """Serialize to JSON.

    Values that cannot be encoded become ``null``, and so does a container
    that appears inside itself.
    """
    return json.dumps(_strip_recursion(obj, frozenset()), default=lambda _: None)


def from_json(text: str | bytes) -> Any:
    return json.loads(text)


_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


def time_ago_in_words(
    when: datetime | str,
    parts: int = 1,
    suffix: str = "ago",
    *,
    now: datetime | None = None,
) -> str:
    """Describe the time since *when*, e.g. ``"1 day, 4 hours ago"``.

    *when* is a datetime or an ISO 8601 string; naive values are taken as
    UTC. *parts* is how many units to include.
    """
    if isinstance(when, str):
        when = datetime.fromisoformat(when)
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)

    remaining = max(int((now - when).total_seconds()), 0)
    words: list[str] = []
    for unit, size in _UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            words.append(f"{count} {unit}{'' if count == 1 else 's'}")
        if len(words) == parts:
            break

    if not words:
        words = ["0 seconds"]
    return f"{', '.join(words)} {suffix}".strip()
