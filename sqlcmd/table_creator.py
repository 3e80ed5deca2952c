"""Table creation utilities."""

import logging
from typing import List, Optional, Union

from tablekit.errors import ValidationError
from tablekit.mappings import sql_type_for
from tablekit.schema import Schema
from .dialects import Dialect, get_dialect

logger = logging.getLogger(__name__)


def create_table(schema: Schema, dialect: Union[str, Dialect] = 'default', pk: Optional[List[str]] = None,
                 if_not_exists: bool = True, name: Optional[str] = None) -> str:
    """Generate CREATE TABLE SQL for a Schema."""
    if schema is None or not len(schema):
        raise ValidationError('schema with at least one column is required')
    d = get_dialect(dialect)
    cols = [
        f'{d.quote(c.name)} {sql_type_for(c.type, d.name)}{"" if c.nullable else " NOT NULL"}'
        for c in schema.columns
    ]
    cons = []
    if pk:
        missing = [k for k in pk if k not in schema]
        if missing:
            raise ValidationError(f'Invalid primary key columns: {missing}')
        cons.append(f'PRIMARY KEY ({d.column_list(pk)})')
    ine = 'IF NOT EXISTS ' if if_not_exists and d.supports_if_not_exists else ''
    if if_not_exists and not d.supports_if_not_exists:
        logger.debug(f'IF NOT EXISTS not supported for {d.name}; omitted')
    return f'CREATE TABLE {ine}{d.quote(name or schema.name)} (\n  ' + ',\n  '.join(cols + cons) + '\n)'
