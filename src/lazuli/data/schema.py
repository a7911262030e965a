"""SQL builders for schema changes.

Each function returns one SQL statement as a string, to run with
``Database.execute``::

    from lazuli.data.schema import create_index, create_table, types

    await db.execute(create_table("users", [
        ("id", types.integer(primary_key=True)),
        ("username", types.varchar),
        ("created_at", types.time),
    ]))
    await db.execute(create_index("users", "username", unique=True))

Column types render to their declaration with ``str()`` and take options
when called: ``types.integer`` is ``integer NOT NULL DEFAULT 0`` while
``types.integer(null=True, default=1)`` is ``integer DEFAULT 1``.
Everything is NOT NULL unless ``null=True``.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Final


class _NoDefault:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NO_DEFAULT"


NO_DEFAULT: Final = _NoDefault()


def quote_identifier(name: str) -> str:
    """``users`` -> ``"users"``, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def sql_literal(value: Any) -> str:
    """Render *value* as an SQL literal for a DEFAULT clause."""
    match value:
        case None:
            return "NULL"
        case bool():
            return "TRUE" if value else "FALSE"
        case int() | float():
            return repr(value)
        case _:
            return "'" + str(value).replace("'", "''") + "'"


@dataclass(frozen=True, slots=True)
class ColumnType:
    """A column type with default options.

    ``str(column_type)`` is the declaration with the defaults; calling it
    returns the declaration with options applied.
    """

    name: str
    default: Any = NO_DEFAULT
    length: int | None = None
    timezone: bool | None = None

    def __call__(
        self,
        *,
        null: bool = False,
        default: Any = NO_DEFAULT,
        unique: bool = False,
        primary_key: bool = False,
        length: int | None = None,
        timezone: bool | None = None,
    ) -> str:
        """Declaration of this type with options.

        Args:
            null: Allow NULL. Types are NOT NULL by default.
            default: DEFAULT value; the type's own default when not given.
            unique: Add UNIQUE.
            primary_key: Add PRIMARY KEY.
            length: Length of a ``varchar``.
            timezone: For ``time``, ``True`` gives ``timestamp with time zone``.
        """
        out = self.name
        size = length if length is not None else self.length
        if size is not None:
            out += f"({size})"
        zone = timezone if timezone is not None else self.timezone
        if zone is not None:
            out += " with time zone" if zone else " without time zone"
        if not null:
            out += " NOT NULL"
        if default is NO_DEFAULT:
            default = self.default
        if default is not NO_DEFAULT:
            out += f" DEFAULT {sql_literal(default)}"
        if unique:
            out += " UNIQUE"
        if primary_key:
            out += " PRIMARY KEY"
        return out

    def __str__(self) -> str:
        return self()


types = SimpleNamespace(
    boolean=ColumnType("boolean", default=False),
    date=ColumnType("date"),
    double=ColumnType("double precision", default=0),
    foreign_key=ColumnType("integer"),
    integer=ColumnType("integer", default=0),
    numeric=ColumnType("numeric", default=0),
    real=ColumnType("real", default=0),
    text=ColumnType("text"),
    time=ColumnType("timestamp", timezone=False),
    varchar=ColumnType("character varying", length=255),
    enum=ColumnType("smallint"),
    blob=ColumnType("blob"),
)
"""The built-in column types, e.g. ``types.varchar``."""


type Declaration = str | tuple[str, Any]


def create_table(
    name: str,
    declarations: Sequence[Declaration],
    *,
    if_not_exists: bool = True,
) -> str:
    """``CREATE TABLE`` from ``(column, type)`` pairs and raw strings.

    A pair declares a column (its name quoted, its type passed through
    ``str``). A plain string is inserted as is, e.g. ``"PRIMARY KEY (a, b)"``.
    """
    lines: list[str] = []
    for declaration in declarations:
        if isinstance(declaration, str):
            lines.append(declaration)
        else:
            column, column_type = declaration
            lines.append(f"{quote_identifier(column)} {column_type}")
    exists = " IF NOT EXISTS" if if_not_exists else ""
    body = ",\n".join(f"  {line}" for line in lines)
    return f"CREATE TABLE{exists} {quote_identifier(name)} (\n{body}\n)"


def drop_table(name: str) -> str:
    return f"DROP TABLE IF EXISTS {quote_identifier(name)}"


def index_name(table: str, *columns: str) -> str:
    """Default index name: ``users_created_at_idx``."""
    parts = [table, *columns]
    return re.sub(r"\W+", "_", "_".join(parts)).strip("_") + "_idx"


def create_index(
    table: str,
    *columns: str,
    unique: bool = False,
    where: str | None = None,
    name: str | None = None,
    if_not_exists: bool = True,
) -> str:
    """``CREATE INDEX`` on *columns* of *table*.

    Columns are inserted verbatim, so expressions like ``lower(email)``
    work. The index is named by ``index_name`` unless *name* is given.
    """
    if not columns:
        msg = "create_index needs at least one column"
        raise ValueError(msg)
    kind = "UNIQUE INDEX" if unique else "INDEX"
    exists = " IF NOT EXISTS" if if_not_exists else ""
    sql = (
        f"CREATE {kind}{exists} {quote_identifier(name or index_name(table, *columns))}"
        f" ON {quote_identifier(table)} ({', '.join(columns)})"
    )
    if where:
        sql += f" WHERE {where}"
    return sql


def drop_index(table: str, *columns: str, name: str | None = None) -> str:
    """Drop the index ``create_index`` made for the same table and columns."""
    return f"DROP INDEX IF EXISTS {quote_identifier(name or index_name(table, *columns))}"


def add_column(table: str, column: str, column_type: Any) -> str:
    return f"ALTER TABLE {quote_identifier(table)} ADD COLUMN {quote_identifier(column)} {column_type}"


def drop_column(table: str, column: str) -> str:
    return f"ALTER TABLE {quote_identifier(table)} DROP COLUMN {quote_identifier(column)}"


def rename_column(table: str, old: str, new: str) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table)}"
        f" RENAME COLUMN {quote_identifier(old)} TO {quote_identifier(new)}"
    )


def rename_table(old: str, new: str) -> str:
    return f"ALTER TABLE {quote_identifier(old)} RENAME TO {quote_identifier(new)}"
