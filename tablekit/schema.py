"""Schema, Column, Row and Table types with the explicit NULL marker."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .errors import ConstructionError


class _NullMarker:
    """Explicit 'no value' slot state, distinct from an absent column."""
    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return 'NULL'

    def __bool__(self):
        return False

    def __reduce__(self):
        return (_NullMarker, ())


NULL = _NullMarker()


def is_missing(value: Any) -> bool:
    """True for None, NULL and pandas/NumPy scalar missing values (NA, NaT, NaN)."""
    if value is None or value is NULL:
        return True
    try:
        return bool(pd.api.types.is_scalar(value) and pd.isna(value))
    except (TypeError, ValueError):
        return False


@dataclass(frozen=True)
class Column:
    """One named, typed, nullable-flagged schema entry."""
    name: str
    type: Any = object
    nullable: bool = True

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise ConstructionError(f'Invalid column name: {self.name!r}')


@dataclass(frozen=True)
class Schema:
    """Ordered, named, typed column set. Immutable once built."""
    name: str
    columns: Tuple[Column, ...] = ()
    _index: Dict[str, int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        cols = tuple(self.columns)
        index = {}
        for pos, col in enumerate(cols):
            if not isinstance(col, Column):
                raise ConstructionError(f'Schema {self.name!r} expects Column entries, got {type(col).__name__}')
            if col.name in index:
                raise ConstructionError(f'Duplicate column name in schema {self.name!r}: {col.name}')
            index[col.name] = pos
        object.__setattr__(self, 'columns', cols)
        object.__setattr__(self, '_index', index)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def index_of(self, name: str) -> int:
        """Position of a column; KeyError when absent."""
        return self._index[name]

    def get(self, name: str) -> Optional[Column]:
        pos = self._index.get(name)
        return None if pos is None else self.columns[pos]

    def find(self, name: str) -> Optional[Column]:
        """Case-insensitive column lookup."""
        col = self.get(name)
        if col is not None:
            return col
        folded = name.casefold()
        for c in self.columns:
            if c.name.casefold() == folded:
                return c
        return None


class Row:
    """Ordered value slots aligned to a Schema; exactly one slot per column."""
    __slots__ = ('schema', '_values')

    def __init__(self, schema: Schema, values: Optional[Iterable[Any]] = None):
        vals = [NULL] * len(schema) if values is None else [NULL if is_missing(v) else v for v in values]
        if len(vals) != len(schema):
            raise ConstructionError(f'Row has {len(vals)} values but schema {schema.name!r} has {len(schema)} columns')
        self.schema = schema
        self._values = vals

    @classmethod
    def from_mapping(cls, schema: Schema, mapping: Mapping[str, Any]) -> 'Row':
        """Fill slots by column name (case-insensitive); absent or null keys become NULL.

        When a mapping holds several case-variants of one key, the first wins.
        """
        folded = {}
        for k, v in mapping.items():
            folded.setdefault(str(k).casefold(), v)
        return cls(schema, [folded.get(c.name.casefold(), NULL) for c in schema.columns])

    def _pos(self, key: Union[int, str]) -> int:
        if isinstance(key, int):
            if not -len(self._values) <= key < len(self._values):
                raise IndexError(key)
            return key
        return self.schema.index_of(key)

    def __getitem__(self, key: Union[int, str]) -> Any:
        return self._values[self._pos(key)]

    def __setitem__(self, key: Union[int, str], value: Any):
        self._values[self._pos(key)] = NULL if is_missing(value) else value

    def get(self, name: str, default: Any = None) -> Any:
        """Value for a column, or default when the column is absent or NULL."""
        if name not in self.schema:
            return default
        value = self[name]
        return default if value is NULL else value

    def is_null(self, key: Union[int, str]) -> bool:
        return self[key] is NULL

    @property
    def values(self) -> Tuple[Any, ...]:
        return tuple(self._values)

    def items(self) -> List[Tuple[str, Any]]:
        return list(zip(self.schema.column_names, self._values))

    def to_dict(self) -> Dict[str, Any]:
        """Non-NULL slots keyed by column name."""
        return {name: v for name, v in self.items() if v is not NULL}

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __eq__(self, other):
        if not isinstance(other, Row):
            return NotImplemented
        return self.schema == other.schema and self._values == other._values

    def __repr__(self):
        body = ', '.join(f'{n}={v!r}' for n, v in self.items())
        return f'Row({body})'


@dataclass
class Table:
    """A Schema plus the Rows filled against it."""
    schema: Schema
    rows: List[Row] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.schema.name

    def append(self, values: Union[Mapping[str, Any], Iterable[Any]]) -> Row:
        """Add a row from a mapping (by name) or a sequence (by position)."""
        row = Row.from_mapping(self.schema, values) if isinstance(values, Mapping) else Row(self.schema, values)
        self.rows.append(row)
        return row

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)
