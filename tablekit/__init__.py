"""Schema inference, row projection and record type synthesis for tabular data."""

from .errors import TableKitError, ValidationError, ConstructionError, ConversionError, TransactionError
from .schema import NULL, Column, Schema, Row, Table, is_missing
from .corrector import coerce_value, unwrap_optional
from .inference import (
    declared_fields, infer_from_type, infer_from_records, fill_table, table_from_records,
    records_from_frame, infer_from_frame, table_from_frame
)
from .projection import RowOutcome, to_row, to_table, to_instances, instances, to_records, to_frame
from .synthesis import SynthesizedRecord, synthesize_type
from .codegen import render_source, write_source
from .mappings import dtype_map, sql_type_for

__all__ = [
    'TableKitError', 'ValidationError', 'ConstructionError', 'ConversionError', 'TransactionError',
    'NULL', 'Column', 'Schema', 'Row', 'Table', 'is_missing', 'coerce_value', 'unwrap_optional',
    'declared_fields', 'infer_from_type', 'infer_from_records', 'fill_table', 'table_from_records',
    'records_from_frame', 'infer_from_frame', 'table_from_frame',
    'RowOutcome', 'to_row', 'to_table', 'to_instances', 'instances', 'to_records', 'to_frame',
    'SynthesizedRecord', 'synthesize_type', 'render_source', 'write_source', 'dtype_map', 'sql_type_for'
]
