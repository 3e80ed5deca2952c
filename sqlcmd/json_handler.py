"""JSON payload handling for DML commands."""

from typing import Any, Dict, List, Mapping, Union

from tablekit.errors import ValidationError
from .command_builder import Command, CommandBuilder, CommandSpec
from .dialects import Dialect

# operation -> payload fields that must be present
required_fields: Dict[str, List[str]] = {
    'insert': ['table', 'values'],
    'update': ['table', 'values', 'keys'],
    'delete': ['table', 'keys'],
    'upsert': ['table', 'values', 'keys'],
    'insert_range': ['table', 'items'],
    'upsert_range': ['table', 'items', 'keyColumns'],
}


def normalize_operation(operation: str) -> str:
    op = (operation or '').lower().replace('-', '_')
    if op not in required_fields:
        raise ValidationError(f'Unknown operation: {operation}')
    return op


def spec_from_payload(operation: str, payload: Mapping[str, Any]) -> CommandSpec:
    """Map a JSON payload to a CommandSpec, checking the fields the operation needs."""
    op = normalize_operation(operation)
    if not isinstance(payload, Mapping):
        raise ValidationError('payload must be a JSON object')
    missing = [k for k in required_fields[op] if k not in payload]
    if missing:
        raise ValidationError(f'Missing required fields: {missing}')
    return CommandSpec(
        table=payload.get('table'),
        values=payload.get('values'),
        keys=payload.get('keys'),
        key_columns=payload.get('keyColumns'),
        items=payload.get('items'),
    )


def json_command(operation: str, payload: Mapping[str, Any], dialect: Union[str, Dialect] = 'default') -> Command:
    """Generate a DML command from a JSON payload."""
    spec = spec_from_payload(operation, payload)
    return CommandBuilder(dialect).build(normalize_operation(operation), spec)
