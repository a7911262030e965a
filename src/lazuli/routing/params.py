"""Path parameter converters.

``{id:int}`` style segments pick a converter by name; ``:id`` and ``{id}``
use ``str``; a trailing ``*`` or ``{name:path}`` uses ``path``.
"""

# (regex_pattern, python_type) for each supported converter
CONVERTERS: dict[str, tuple[str, type]] = {
    "str": (r"[^/]+", str),
    "int": (r"\d+", int),
    "float": (r"\d+(?:\.\d+)?", float),
    "path": (r".+", str),
}


def convert_param(value: str, param_type: str) -> str | int | float:
    """Convert a captured segment to the converter's type.

    Raises ``ValueError`` if the string cannot be converted and ``KeyError``
    for an unknown converter.
    """
    _, target_type = CONVERTERS[param_type]
    return target_type(value)
