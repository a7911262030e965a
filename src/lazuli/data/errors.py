"""Data layer error hierarchy."""

from lazuli.errors import LazuliError


class DataError(LazuliError):
    """Base for all lazuli.data errors."""


class QueryError(DataError):
    """A SQL statement failed. The driver's exception is chained."""
