"""Dialect strategies: identifier quoting, multi-row INSERT and merge/upsert syntax."""

import logging
from typing import Dict, List, Sequence, Union

from tablekit.errors import ValidationError

logger = logging.getLogger(__name__)

ParamRow = Dict[str, str]  # column -> bind parameter name


class Dialect:
    """Strategy for store-specific SQL text. Bind markers are always :name."""
    name = 'default'
    quote_open = '"'
    quote_close = '"'
    statement_end = ''
    supports_if_not_exists = True

    def quote(self, identifier: str) -> str:
        """Delimit an identifier, doubling embedded closing delimiters.

        Input that is already delimited passes through only when every closing
        delimiter inside it is doubled. Colons are rejected because commands
        use :name bind markers.
        """
        if identifier is None or not str(identifier).strip():
            raise ValidationError('identifier is required')
        s = str(identifier)
        if ':' in s:
            raise ValidationError(f'Identifier may not contain ":": {s}')
        if self._is_delimited(s):
            return s
        return f'{self.quote_open}{s.replace(self.quote_close, self.quote_close * 2)}{self.quote_close}'

    def _is_delimited(self, s: str) -> bool:
        if len(s) < 3 or not (s.startswith(self.quote_open) and s.endswith(self.quote_close)):
            return False
        inner = s[1:-1]
        return bool(inner.strip()) and self.quote_close not in inner.replace(self.quote_close * 2, '')

    def column_list(self, columns: Sequence[str], prefix: str = '') -> str:
        return ', '.join(f'{prefix}{self.quote(c)}' for c in columns)

    @staticmethod
    def marker(param: str) -> str:
        return f':{param}'

    def values_group(self, columns: Sequence[str], row: ParamRow) -> str:
        return f'({", ".join(self.marker(row[c]) for c in columns)})'

    def insert_rows_sql(self, table: str, columns: Sequence[str], param_rows: List[ParamRow]) -> str:
        """One INSERT carrying a VALUES group per row."""
        groups = ', '.join(self.values_group(columns, row) for row in param_rows)
        return f'INSERT INTO {self.quote(table)} ({self.column_list(columns)}) VALUES {groups}{self.statement_end}'

    def merge_sql(self, table: str, columns: Sequence[str], key_columns: Sequence[str],
                  update_columns: Sequence[str], param_rows: List[ParamRow]) -> str:
        """Update rows matching on key_columns, insert the others."""
        raise NotImplementedError(f'Upsert not supported for dialect: {self.name}')


class MergeDialect(Dialect):
    """MERGE over a UNION ALL of per-row SELECTs (SQL Server, Oracle)."""
    source_from = ''
    alias_as = ' AS '

    def _source(self, columns: Sequence[str], param_rows: List[ParamRow]) -> str:
        selects = [
            'SELECT ' + ', '.join(f'{self.marker(row[c])} AS {self.quote(c)}' for c in columns) + self.source_from
            for row in param_rows
        ]
        return ' UNION ALL '.join(selects)

    def merge_sql(self, table, columns, key_columns, update_columns, param_rows):
        on = ' AND '.join(f'target.{self.quote(k)} = source.{self.quote(k)}' for k in key_columns)
        sql = (f'MERGE INTO {self.quote(table)}{self.alias_as}target '
               f'USING ({self._source(columns, param_rows)}){self.alias_as}source ON ({on})')
        if update_columns:
            sets = ', '.join(f'target.{self.quote(c)} = source.{self.quote(c)}' for c in update_columns)
            sql += f' WHEN MATCHED THEN UPDATE SET {sets}'
        sql += (f' WHEN NOT MATCHED THEN INSERT ({self.column_list(columns)}) '
                f'VALUES ({self.column_list(columns, prefix="source.")})')
        return sql + self.statement_end


class MssqlDialect(MergeDialect):
    name = 'mssql'
    quote_open = '['
    quote_close = ']'
    # MERGE must be terminated in T-SQL
    statement_end = ';'
    supports_if_not_exists = False


class OracleDialect(MergeDialect):
    name = 'oracle'
    source_from = ' FROM dual'
    alias_as = ' '
    supports_if_not_exists = False

    def insert_rows_sql(self, table, columns, param_rows):
        if len(param_rows) == 1:
            return super().insert_rows_sql(table, columns, param_rows)
        into = ' '.join(
            f'INTO {self.quote(table)} ({self.column_list(columns)}) VALUES {self.values_group(columns, row)}'
            for row in param_rows
        )
        return f'INSERT ALL {into} SELECT * FROM DUAL'


class OnConflictDialect(Dialect):
    """INSERT ... ON CONFLICT (keys) DO UPDATE (PostgreSQL, SQLite)."""
    excluded = 'excluded'

    def merge_sql(self, table, columns, key_columns, update_columns, param_rows):
        sql = self.insert_rows_sql(table, columns, param_rows)
        conflict = self.column_list(key_columns)
        if not update_columns:
            return f'{sql} ON CONFLICT ({conflict}) DO NOTHING'
        sets = ', '.join(f'{self.quote(c)} = {self.excluded}.{self.quote(c)}' for c in update_columns)
        return f'{sql} ON CONFLICT ({conflict}) DO UPDATE SET {sets}'


class PostgresDialect(OnConflictDialect):
    name = 'postgresql'
    excluded = 'EXCLUDED'


class SqliteDialect(OnConflictDialect):
    name = 'sqlite'


class MysqlDialect(Dialect):
    name = 'mysql'
    quote_open = '`'
    quote_close = '`'

    def merge_sql(self, table, columns, key_columns, update_columns, param_rows):
        sql = self.insert_rows_sql(table, columns, param_rows)
        # a no-op assignment keeps matched rows untouched when only keys were given
        targets = update_columns or key_columns[:1]
        sets = ', '.join(
            f'{self.quote(c)} = VALUES({self.quote(c)})' if update_columns else f'{self.quote(c)} = {self.quote(c)}'
            for c in targets
        )
        return f'{sql} ON DUPLICATE KEY UPDATE {sets}'


dialects: Dict[str, Dialect] = {
    d.name: d for d in (MssqlDialect(), OracleDialect(), PostgresDialect(), SqliteDialect(), MysqlDialect())
}

aliases = {
    'default': 'mssql',
    'sqlserver': 'mssql',
    'postgres': 'postgresql',
    'pg': 'postgresql',
    'mariadb': 'mysql',
}


def get_dialect(name: Union[str, Dialect, None] = 'default') -> Dialect:
    """Resolve a dialect by name (SQLAlchemy driver suffixes are ignored)."""
    if isinstance(name, Dialect):
        return name
    key = (name or 'default').lower().split('+')[0]
    key = aliases.get(key, key)
    if key not in dialects:
        raise ValidationError(f'Unknown dialect: {name}')
    return dialects[key]


def register_dialect(dialect: Dialect, *names: str):
    """Add or replace a dialect strategy, optionally under extra alias names."""
    dialects[dialect.name] = dialect
    for alias in names:
        aliases[alias.lower()] = dialect.name
    logger.debug(f'Registered dialect {dialect.name} aliases={list(names)}')
