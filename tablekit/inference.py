"""Schema inference from declared class shapes, key/value records and DataFrames."""

import dataclasses
import logging
import typing
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .corrector import unwrap_optional
from .errors import ValidationError
from .schema import Column, Row, Schema, Table, is_missing

logger = logging.getLogger(__name__)


def declared_fields(cls: type) -> List[Tuple[str, Any]]:
    """Public (name, annotation) pairs of a class in declaration order.

    Dataclasses contribute their fields; other classes their resolved type
    hints. Names starting with an underscore and ClassVars are skipped.
    """
    if not isinstance(cls, type):
        raise ValidationError(f'Expected a class, got {type(cls).__name__}')
    hints = typing.get_type_hints(cls)
    names = [f.name for f in dataclasses.fields(cls)] if dataclasses.is_dataclass(cls) else list(hints)
    out = []
    for name in names:
        if name.startswith('_'):
            continue
        ann = hints.get(name, Any)
        if ann is ClassVar or typing.get_origin(ann) is ClassVar:
            continue
        out.append((name, ann))
    return out


def infer_from_type(cls: type, name: Optional[str] = None) -> Schema:
    """One Column per public declared attribute; Optional[T] gives type T, nullable."""
    cols = []
    for field_name, ann in declared_fields(cls):
        col_type, nullable = unwrap_optional(ann)
        cols.append(Column(field_name, col_type, nullable))
    schema = Schema(name or cls.__name__, cols)
    logger.debug(f'Inferred schema {schema.name} from type: {schema.column_names}')
    return schema


def _check_records(records: Any) -> List[Mapping[str, Any]]:
    if records is None:
        raise ValidationError('records are required')
    if isinstance(records, Mapping):
        records = [records]
    out = list(records)
    for i, rec in enumerate(out):
        if not isinstance(rec, Mapping):
            raise ValidationError(f'Record {i} is not a mapping: {type(rec).__name__}')
    return out


def infer_from_records(name: str, records: Iterable[Mapping[str, Any]], keep_null_keys: bool = False) -> Schema:
    """Union of keys across all records, in first-seen order.

    A key's type comes from its first non-null value; every inferred column is
    nullable. Keys are matched case-insensitively and keep their first
    spelling. Keys whose value is null in every record are dropped unless
    keep_null_keys is set, in which case they become nullable object columns.
    """
    if not name:
        raise ValidationError('schema name is required')
    seen: Dict[str, List[Any]] = {}
    for rec in _check_records(records):
        for key, value in rec.items():
            folded = str(key).casefold()
            if is_missing(value):
                if keep_null_keys and folded not in seen:
                    seen[folded] = [str(key), None]
                continue
            if folded not in seen:
                seen[folded] = [str(key), type(value)]
            elif seen[folded][1] is None:
                seen[folded][1] = type(value)
    schema = Schema(name, [Column(key, value_type or object, True) for key, value_type in seen.values()])
    logger.debug(f'Inferred schema {name} from records: {schema.column_names}')
    return schema


def fill_table(schema: Schema, records: Iterable[Mapping[str, Any]]) -> Table:
    """One Row per record; columns absent or null in a record hold NULL."""
    table = Table(schema)
    for rec in _check_records(records):
        table.rows.append(Row.from_mapping(schema, rec))
    return table


def table_from_records(name: str, records: Iterable[Mapping[str, Any]], fill: bool = True,
                       keep_null_keys: bool = False) -> Table:
    """Infer a Schema from records and optionally fill it with one Row per record."""
    records = _check_records(records)
    schema = infer_from_records(name, records, keep_null_keys=keep_null_keys)
    return fill_table(schema, records) if fill else Table(schema)


def _native(value: Any) -> Any:
    if is_missing(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, pd.Timedelta):
        return value.to_pytimedelta()
    if type(value).__module__ == 'numpy' and hasattr(value, 'item'):
        return value.item()
    return value


def records_from_frame(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as plain records with native Python scalars and None for missing values."""
    if not isinstance(df, pd.DataFrame):
        raise TypeError('Input must be a pandas DataFrame')
    return [{str(k): _native(v) for k, v in rec.items()} for rec in df.to_dict('records')]


def infer_from_frame(df: pd.DataFrame, name: str, keep_null_keys: bool = False) -> Schema:
    return infer_from_records(name, records_from_frame(df), keep_null_keys=keep_null_keys)


def table_from_frame(df: pd.DataFrame, name: str, fill: bool = True, keep_null_keys: bool = False) -> Table:
    return table_from_records(name, records_from_frame(df), fill=fill, keep_null_keys=keep_null_keys)
