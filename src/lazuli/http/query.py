"""Read-only query string parameters."""

from collections.abc import Iterator, Mapping
from urllib.parse import parse_qs, urlencode


class QueryParams(Mapping[str, str]):
    """Parsed query string.

    ``params["tag"]`` is the first value, ``get_list("tag")`` all of them.
    ``canonical`` re-encodes the pairs sorted by name, so two query strings
    that differ only in parameter order produce the same text.
    """

    _data: dict[str, list[str]]
    _raw: bytes

    __slots__ = ("_data", "_raw")

    def __init__(self, query_string: bytes | str = b"") -> None:
        if isinstance(query_string, str):
            query_string = query_string.encode("latin-1")
        object.__setattr__(self, "_raw", query_string)
        parsed = parse_qs(query_string.decode("latin-1"), keep_blank_values=True)
        object.__setattr__(self, "_data", parsed)

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"QueryParams({self.to_dict()!r})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        """Return the first value for *key*, or *default*."""
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key*."""
        return list(self._data.get(key, []))

    def to_dict(self) -> dict[str, str]:
        """First value per name, as a plain dict."""
        return {key: values[0] for key, values in self._data.items() if values}

    @property
    def raw(self) -> str:
        """The query string as received, without the leading ``?``."""
        return self._raw.decode("latin-1")

    @property
    def canonical(self) -> str:
        """The parameters re-encoded in name order."""
        pairs = [(key, value) for key in sorted(self._data) for value in self._data[key]]
        return urlencode(pairs)
