"""Python type to SQL type mappings and literal tables used for coercion."""

import datetime
import decimal
import uuid
from typing import Any, Dict

# Configurable default VARCHAR length
default_varchar_length = 255

# Database-specific type mappings (Python type -> SQL type)
dtype_map: Dict[str, Dict[type, str]] = {
    'oracle': {
        str: f'VARCHAR2({default_varchar_length})', int: 'NUMBER', float: 'BINARY_DOUBLE',
        bool: 'NUMBER(1,0)', decimal.Decimal: 'NUMBER', datetime.datetime: 'TIMESTAMP',
        datetime.date: 'DATE', datetime.time: 'VARCHAR2(16)', datetime.timedelta: 'INTERVAL DAY TO SECOND',
        bytes: 'BLOB', uuid.UUID: 'RAW(16)'
    },
    'mssql': {
        str: f'NVARCHAR({default_varchar_length})', int: 'BIGINT', float: 'FLOAT', bool: 'BIT',
        decimal.Decimal: 'DECIMAL(38,10)', datetime.datetime: 'DATETIME2', datetime.date: 'DATE',
        datetime.time: 'TIME', datetime.timedelta: 'BIGINT', bytes: 'VARBINARY(MAX)',
        uuid.UUID: 'UNIQUEIDENTIFIER'
    },
    'mysql': {
        str: f'VARCHAR({default_varchar_length})', int: 'BIGINT', float: 'DOUBLE', bool: 'TINYINT(1)',
        decimal.Decimal: 'DECIMAL(38,10)', datetime.datetime: 'DATETIME', datetime.date: 'DATE',
        datetime.time: 'TIME', datetime.timedelta: 'BIGINT', bytes: 'BLOB', uuid.UUID: 'CHAR(36)'
    },
    'postgresql': {
        str: f'VARCHAR({default_varchar_length})', int: 'BIGINT', float: 'DOUBLE PRECISION',
        bool: 'BOOLEAN', decimal.Decimal: 'NUMERIC', datetime.datetime: 'TIMESTAMP',
        datetime.date: 'DATE', datetime.time: 'TIME', datetime.timedelta: 'INTERVAL',
        bytes: 'BYTEA', uuid.UUID: 'UUID'
    },
    'sqlite': {
        str: 'TEXT', int: 'INTEGER', float: 'REAL', bool: 'INTEGER', decimal.Decimal: 'NUMERIC',
        datetime.datetime: 'TEXT', datetime.date: 'TEXT', datetime.time: 'TEXT',
        datetime.timedelta: 'INTEGER', bytes: 'BLOB', uuid.UUID: 'TEXT'
    }
}

# Fallback SQL type for anything not mapped above
fallback_types = {
    'oracle': f'VARCHAR2({default_varchar_length})',
    'mssql': 'NVARCHAR(MAX)',
    'mysql': 'TEXT',
    'postgresql': 'TEXT',
    'sqlite': 'TEXT',
}

# Literal spellings accepted when coercing to bool
true_strings = frozenset(('true', 'yes', 'y', '1', 't', 'on'))
false_strings = frozenset(('false', 'no', 'n', '0', 'f', 'off'))


def sql_type_for(py_type: Any, dialect: str) -> str:
    """Map a Python type to the dialect's column type, walking the MRO for subclasses."""
    types = dtype_map.get(dialect, dtype_map['sqlite'])
    for klass in getattr(py_type, '__mro__', ()):
        if klass in types:
            return types[klass]
    return fallback_types.get(dialect, 'TEXT')
