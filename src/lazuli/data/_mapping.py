"""Row mapping.

Rows come out of the driver as dicts. ``map_row`` turns one into the
caller's result type: ``dict`` keeps the row as is, a dataclass is built
from the columns matching its fields. SQLite stores booleans as integers
and is loose about numeric affinity, so ``int``, ``float``, ``bool`` and
``str`` fields are coerced.
"""

import dataclasses
import types
from typing import Any, get_args, get_origin

_COERCIBLE: dict[type, Any] = {
    int: lambda v: int(v) if v != "" else 0,
    float: lambda v: float(v) if v != "" else 0.0,
    bool: lambda v: bool(int(v)) if isinstance(v, str) else bool(v),
    str: str,
}


def _coercions(cls: type) -> dict[str, type | None]:
    result: dict[str, type | None] = {}
    for f in dataclasses.fields(cls):
        annotation = f.type
        # X | None coerces to X
        if get_origin(annotation) is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            annotation = args[0] if len(args) == 1 else None
        result[f.name] = annotation if annotation in _COERCIBLE else None
    return result


def _coerce(value: Any, target: type | None) -> Any:
    if target is None or value is None or isinstance(value, target):
        return value
    return _COERCIBLE[target](value)


def _check_target(cls: type) -> None:
    if cls is not dict and not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} is not a dataclass; rows map to dataclasses or dict"
        raise TypeError(msg)


def map_row[T](cls: type[T], row: dict[str, Any]) -> T:
    """Build a *cls* from *row*. Columns without a matching field are dropped.

    Raises ``TypeError`` if a required field has no column.
    """
    return map_rows(cls, [row])[0]


def map_rows[T](cls: type[T], rows: list[dict[str, Any]]) -> list[T]:
    _check_target(cls)
    if cls is dict:
        return [dict(row) for row in rows]  # type: ignore[misc]
    coercion = _coercions(cls)
    return [
        cls(**{k: _coerce(v, coercion[k]) for k, v in row.items() if k in coercion})
        for row in rows
    ]
