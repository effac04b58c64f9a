"""Exceptions raised by the data table engine."""


class DataTableError(Exception):
    """Base class for all data table errors."""


class ColumnConfigError(DataTableError, ValueError):
    """A column configuration cannot be used.

    Raised for duplicate column ids, unknown sort types and custom sort
    types without a comparator.
    """


class SelectionUnavailableError(DataTableError):
    """Row selection was used on a table without a ``row_id`` function."""
