"""Quick reader: run a query and get back a filled Table."""

from typing import Any, Mapping, Optional

from tablekit.inference import table_from_records
from tablekit.schema import Table
from .conn import ExecutionContext


def read_table(context: ExecutionContext, sql: str, params: Optional[Mapping[str, Any]] = None,
               name: str = 'Query') -> Table:
    """Fetch query rows and infer a Table from them.

    Result columns that are NULL in every row are kept as nullable object
    columns. An empty result yields an empty schema.
    """
    records = context.fetch_records(sql, params)
    return table_from_records(name, records, keep_null_keys=True)
