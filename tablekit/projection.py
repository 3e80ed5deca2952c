"""Projection between Schema-aligned Rows and instances, records and DataFrames."""

import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

import pandas as pd

from .corrector import coerce_value
from .errors import ConversionError, ValidationError
from .inference import declared_fields, infer_from_type
from .schema import NULL, Row, Schema, Table

logger = logging.getLogger(__name__)


class RowOutcome(NamedTuple):
    """Result of converting one Row: a value on success, an error otherwise."""
    index: int
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def to_row(instance: Any, schema: Schema) -> Row:
    """Copy public attributes whose names match a Column; the Schema decides what is kept."""
    if isinstance(instance, Mapping):
        return Row.from_mapping(schema, instance)
    return Row(schema, [NULL if c.name.startswith('_') else getattr(instance, c.name, NULL)
                        for c in schema.columns])


def to_table(instances: Iterable[Any], schema: Optional[Schema] = None) -> Table:
    """Rows for a collection of instances; the Schema defaults to the first instance's type."""
    items = list(instances)
    if schema is None:
        if not items:
            raise ValidationError('schema is required when no instances are given')
        schema = infer_from_type(type(items[0]))
    return Table(schema, [to_row(obj, schema) for obj in items])


def _writable_fields(cls: type) -> List[Tuple[str, Any]]:
    """Declared fields that can be assigned on a new instance."""
    if dataclasses.is_dataclass(cls):
        init_names = {f.name for f in dataclasses.fields(cls) if f.init}
        return [(n, ann) for n, ann in declared_fields(cls) if n in init_names]
    out = []
    for name, ann in declared_fields(cls):
        attr = getattr(cls, name, None)
        if isinstance(attr, property) and attr.fset is None:
            continue
        out.append((name, ann))
    return out


def _build(cls: type, values: Dict[str, Any]) -> Any:
    if dataclasses.is_dataclass(cls):
        return cls(**values)
    obj = cls()
    for name, value in values.items():
        setattr(obj, name, value)
    return obj


def to_instances(table: Table, cls: type, strict: bool = False) -> List[RowOutcome]:
    """Convert each Row into an instance of cls, reporting success or failure per row.

    Attributes without a same-named Column, or whose slot is NULL, are left
    at the class default. With strict=True the first failure is raised as a
    ConversionError instead of being reported.
    """
    if table is None:
        raise ValidationError('table is required')
    matched = [(n, ann) for n, ann in _writable_fields(cls) if n in table.schema]
    outcomes = []
    for i, row in enumerate(table.rows):
        try:
            values = {}
            for name, ann in matched:
                slot = row[name]
                if slot is NULL:
                    continue
                values[name] = coerce_value(slot, ann, column=name)
            try:
                obj = _build(cls, values)
            except (TypeError, AttributeError) as e:
                raise ConversionError(values, cls, reason=str(e)) from e
            outcomes.append(RowOutcome(i, obj))
        except ConversionError as e:
            if strict:
                raise
            logger.warning(f'Row {i} of {table.name} not converted to {cls.__name__}: {e}')
            outcomes.append(RowOutcome(i, error=e))
    return outcomes


def instances(outcomes: Iterable[RowOutcome]) -> List[Any]:
    """Values of the successful outcomes, in row order."""
    return [o.value for o in outcomes if o.ok]


def to_records(table: Table) -> List[Dict[str, Any]]:
    """Exactly one record per Row, holding every non-NULL column."""
    return [row.to_dict() for row in table.rows]


def to_frame(table: Table) -> pd.DataFrame:
    """Rows as a DataFrame with one column per Schema column; NULL becomes None."""
    data = [[None if v is NULL else v for v in row] for row in table.rows]
    return pd.DataFrame(data, columns=table.schema.column_names)
