"""Runtime synthesis of record types that mirror a Schema."""

import keyword
import logging
from typing import Any, Dict, Iterable, Optional

from .errors import ConstructionError
from .schema import Column, Schema

logger = logging.getLogger(__name__)


class SynthesizedRecord:
    """Base of every synthesized type: keyword construction, equality and repr over __schema__."""
    __slots__ = ()
    __schema__: Schema = None

    def __init__(self, **values):
        names = self.__schema__.column_names
        unknown = [k for k in values if k not in self.__schema__]
        if unknown:
            raise TypeError(f'{type(self).__name__} got unexpected fields: {unknown}')
        for name in names:
            setattr(self, name, values.get(name))

    def as_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self.__schema__.column_names}

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.as_dict() == other.as_dict()

    __hash__ = None

    def __repr__(self):
        body = ', '.join(f'{k}={v!r}' for k, v in self.as_dict().items())
        return f'{type(self).__name__}({body})'


def check_column_names(columns: Iterable[Column]):
    """Raise ConstructionError unless every column name is a unique, usable attribute name."""
    seen = set()
    for col in columns:
        name = col.name
        if not isinstance(name, str) or not name.isidentifier() or keyword.iskeyword(name):
            raise ConstructionError(f'Invalid attribute name for column: {name!r}')
        if name.startswith('_'):
            raise ConstructionError(f'Column name may not start with an underscore: {name}')
        if hasattr(SynthesizedRecord, name):
            raise ConstructionError(f'Column name shadows a record member: {name}')
        if name in seen:
            raise ConstructionError(f'Duplicate column name: {name}')
        seen.add(name)


def annotation_for(column: Column) -> Any:
    """Declared type of a column's accessor; Optional[T] for nullable columns."""
    if not column.nullable or column.type in (Any, object):
        return column.type
    try:
        return Optional[column.type]
    except TypeError:
        return column.type


def _accessor(column: Column) -> property:
    slot = f'_{column.name}'
    ann = annotation_for(column)

    def fget(self):
        return getattr(self, slot)

    def fset(self, value):
        setattr(self, slot, value)

    fget.__annotations__ = {'return': ann}
    fset.__annotations__ = {'value': ann, 'return': None}
    return property(fget, fset, doc=f'{column.name} column')


def synthesize_type(schema: Schema, name: Optional[str] = None) -> type:
    """Create a new class with one private slot and one read/write property per column.

    Every call builds a distinct type, even for identical schemas; callers that
    need a stable identity must keep the result themselves.
    """
    if schema is None:
        raise ConstructionError('schema is required')
    if not isinstance(schema, Schema):
        raise ConstructionError(f'Expected a Schema, got {type(schema).__name__}')
    check_column_names(schema.columns)
    type_name = name or schema.name or 'DynamicType'
    namespace = {
        '__slots__': tuple(f'_{c.name}' for c in schema.columns),
        '__schema__': schema,
        '__annotations__': {c.name: annotation_for(c) for c in schema.columns},
        '__module__': __name__,
        '__qualname__': type_name,
    }
    for col in schema.columns:
        namespace[col.name] = _accessor(col)
    cls = type(type_name, (SynthesizedRecord,), namespace)
    logger.debug(f'Synthesized type {type_name} with columns {schema.column_names}')
    return cls
