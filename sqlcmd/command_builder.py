"""Parameterized DML builder for INSERT, UPDATE, DELETE, UPSERT and batch variants."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Union

from tablekit.errors import ValidationError
from .dialects import Dialect, get_dialect

logger = logging.getLogger(__name__)

KEY_PREFIX = 'key_'

# operation -> CommandSpec fields it requires, in validation order
requirements = {
    'insert': ('values',),
    'update': ('values', 'keys'),
    'delete': ('keys',),
    'upsert': ('values', 'keys'),
    'insert_range': ('items',),
    'upsert_range': ('items', 'key_columns'),
}


class Command(NamedTuple):
    """SQL text plus its parameter bindings (name -> value)."""
    sql: str
    params: Dict[str, Any]


def _check_map(mapping: Any, what: str):
    if mapping is None or not isinstance(mapping, Mapping) or not mapping:
        raise ValidationError(f'{what} cannot be empty')
    folded = set()
    for key in mapping:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError(f'Invalid column name in {what}: {key!r}')
        if key.casefold() in folded:
            raise ValidationError(f'Duplicate column in {what}: {key}')
        folded.add(key.casefold())


@dataclass
class CommandSpec:
    """Unvalidated builder input: a table plus values/keys maps, key columns or batch items."""
    table: Optional[str] = None
    values: Optional[Mapping[str, Any]] = None
    keys: Optional[Mapping[str, Any]] = None
    key_columns: Optional[Sequence[str]] = None
    items: Optional[Sequence[Mapping[str, Any]]] = None

    def validate(self, operation: str):
        """Raise ValidationError for the first missing input the operation needs."""
        if operation not in requirements:
            raise ValidationError(f'Unknown operation: {operation}')
        if self.table is None or not str(self.table).strip():
            raise ValidationError('table name is required')
        for field_name in requirements[operation]:
            if field_name in ('values', 'keys'):
                _check_map(getattr(self, field_name), field_name)
            elif field_name == 'items':
                self._check_items()
            elif field_name == 'key_columns':
                self._check_key_columns()

    def _check_items(self):
        if self.items is None or isinstance(self.items, (str, Mapping)):
            raise ValidationError('items must be a non-empty list of mappings')
        self.items = list(self.items)
        if not self.items:
            raise ValidationError('items cannot be empty')
        for i, item in enumerate(self.items):
            if not isinstance(item, Mapping):
                raise ValidationError(f'Item {i} is not a mapping: {type(item).__name__}')
        _check_map(self.items[0], 'first item')

    def _check_key_columns(self):
        if self.key_columns is None or isinstance(self.key_columns, str):
            raise ValidationError('key columns must be a non-empty list')
        self.key_columns = list(self.key_columns)
        if not self.key_columns:
            raise ValidationError('key columns cannot be empty')
        columns = {c.casefold() for c in self.items[0]}
        missing = [k for k in self.key_columns if not isinstance(k, str) or k.casefold() not in columns]
        if missing:
            raise ValidationError(f'Key columns {missing} not in item data')


class ParamNamer:
    """Hands out bind parameter names that are unique within one command."""
    def __init__(self):
        self.used = set()

    def __call__(self, column: str, prefix: str = '', suffix: Optional[int] = None) -> str:
        name = prefix + re.sub(r'[^0-9A-Za-z_]', '_', column)
        if name[0].isdigit():
            name = f'p_{name}'
        if suffix is not None:
            name = f'{name}_{suffix}'
        candidate, n = name, 1
        # compare case-insensitively; some drivers fold bind names
        while candidate.casefold() in self.used:
            candidate = f'{name}_{n}'
            n += 1
        self.used.add(candidate.casefold())
        return candidate


class CommandBuilder:
    """Builds parameterized DML from key/value maps. Stateless apart from the dialect."""
    def __init__(self, dialect: Union[str, Dialect] = 'default'):
        self.dialect = get_dialect(dialect)

    def _done(self, operation: str, table: str, sql: str, params: Dict[str, Any]) -> Command:
        logger.debug(f'Built {operation} on {table} ({self.dialect.name}): {len(params)} params')
        return Command(sql, params)

    def insert(self, table: str, values: Mapping[str, Any]) -> Command:
        """INSERT INTO t (cols) VALUES (:params)."""
        CommandSpec(table=table, values=values).validate('insert')
        namer = ParamNamer()
        columns = list(values)
        row = {c: namer(c) for c in columns}
        sql = self.dialect.insert_rows_sql(table, columns, [row])
        return self._done('insert', table, sql, {row[c]: values[c] for c in columns})

    def _where(self, keys: Mapping[str, Any], namer: ParamNamer, params: Dict[str, Any]) -> str:
        parts = []
        for k, v in keys.items():
            pname = namer(k, prefix=KEY_PREFIX)
            parts.append(f'{self.dialect.quote(k)} = {self.dialect.marker(pname)}')
            params[pname] = v
        return ' AND '.join(parts)

    def update(self, table: str, values: Mapping[str, Any], keys: Mapping[str, Any]) -> Command:
        """UPDATE t SET c = :c WHERE k = :key_k; key parameters never collide with value parameters."""
        CommandSpec(table=table, values=values, keys=keys).validate('update')
        namer = ParamNamer()
        params = {}
        sets = []
        for c, v in values.items():
            pname = namer(c)
            sets.append(f'{self.dialect.quote(c)} = {self.dialect.marker(pname)}')
            params[pname] = v
        where = self._where(keys, namer, params)
        sql = f'UPDATE {self.dialect.quote(table)} SET {", ".join(sets)} WHERE {where}{self.dialect.statement_end}'
        return self._done('update', table, sql, params)

    def delete(self, table: str, keys: Mapping[str, Any]) -> Command:
        """DELETE FROM t WHERE k = :key_k."""
        CommandSpec(table=table, keys=keys).validate('delete')
        params = {}
        where = self._where(keys, ParamNamer(), params)
        sql = f'DELETE FROM {self.dialect.quote(table)} WHERE {where}{self.dialect.statement_end}'
        return self._done('delete', table, sql, params)

    def upsert(self, table: str, values: Mapping[str, Any], keys: Mapping[str, Any]) -> Command:
        """Merge one row: match on keys, update the non-key values, insert all columns otherwise.

        A column present in both maps takes the key's value.
        """
        CommandSpec(table=table, values=values, keys=keys).validate('upsert')
        namer = ParamNamer()
        key_columns = list(keys)
        folded_keys = {k.casefold() for k in key_columns}
        update_columns = [c for c in values if c.casefold() not in folded_keys]
        row = {k: namer(k, prefix=KEY_PREFIX) for k in key_columns}
        row.update({c: namer(c) for c in update_columns})
        params = {row[k]: keys[k] for k in key_columns}
        params.update({row[c]: values[c] for c in update_columns})
        sql = self.dialect.merge_sql(table, key_columns + update_columns, key_columns, update_columns, [row])
        return self._done('upsert', table, sql, params)

    def insert_range(self, table: str, items: Sequence[Mapping[str, Any]]) -> Command:
        """One multi-row INSERT; columns come from the first item, parameters are suffixed by row index."""
        spec = CommandSpec(table=table, items=items)
        spec.validate('insert_range')
        namer = ParamNamer()
        columns = list(spec.items[0])
        param_rows, params = self._param_rows(spec.items, columns, namer)
        sql = self.dialect.insert_rows_sql(table, columns, param_rows)
        return self._done('insert_range', table, sql, params)

    def upsert_range(self, table: str, items: Sequence[Mapping[str, Any]], key_columns: Sequence[str]) -> Command:
        """One merge over all items, joined on key_columns; non-key columns are updated on match."""
        spec = CommandSpec(table=table, items=items, key_columns=key_columns)
        spec.validate('upsert_range')
        columns = list(spec.items[0])
        by_fold = {c.casefold(): c for c in columns}
        keys = [by_fold[k.casefold()] for k in spec.key_columns]
        update_columns = [c for c in columns if c not in keys]
        param_rows, params = self._param_rows(spec.items, columns, ParamNamer())
        sql = self.dialect.merge_sql(table, columns, keys, update_columns, param_rows)
        return self._done('upsert_range', table, sql, params)

    @staticmethod
    def _param_rows(items: List[Mapping[str, Any]], columns: List[str], namer: ParamNamer):
        param_rows = []
        params = {}
        for idx, item in enumerate(items):
            row = {c: namer(c, suffix=idx) for c in columns}
            for c in columns:
                params[row[c]] = item.get(c)
            param_rows.append(row)
        return param_rows, params

    def build(self, operation: str, spec: CommandSpec) -> Command:
        """Dispatch a CommandSpec to the named operation."""
        op = (operation or '').lower().replace('-', '_')
        if op not in requirements:
            raise ValidationError(f'Unknown operation: {operation}')
        if op == 'insert':
            return self.insert(spec.table, spec.values)
        if op == 'update':
            return self.update(spec.table, spec.values, spec.keys)
        if op == 'delete':
            return self.delete(spec.table, spec.keys)
        if op == 'upsert':
            return self.upsert(spec.table, spec.values, spec.keys)
        if op == 'insert_range':
            return self.insert_range(spec.table, spec.items)
        return self.upsert_range(spec.table, spec.items, spec.key_columns)
