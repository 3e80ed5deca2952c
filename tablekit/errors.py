"""Error taxonomy shared by schema, projection and command code."""

from typing import Any, Optional


class TableKitError(Exception):
    """Base class for all tablekit / sqlcmd errors."""


class ValidationError(TableKitError, ValueError):
    """A required input (table name, values, keys, items) is missing or empty."""


class ConstructionError(TableKitError, ValueError):
    """A Schema, Column or Row definition is invalid."""


class ConversionError(TableKitError, ValueError):
    """A stored value cannot be coerced to a declared type."""
    def __init__(self, value: Any, target: Any, column: Optional[str] = None, reason: Optional[str] = None):
        self.value = value
        self.target = target
        self.column = column
        self.reason = reason
        where = f' for column {column!r}' if column else ''
        why = f': {reason}' if reason else ''
        super().__init__(f'Cannot convert {value!r} to {_type_name(target)}{where}{why}')


class TransactionError(TableKitError):
    """A transaction was used after it was committed or rolled back."""


def _type_name(target: Any) -> str:
    return getattr(target, '__name__', None) or str(target)
