"""Dynamic DML builder and executor for key/value data."""

from .dialects import Dialect, get_dialect, register_dialect
from .command_builder import Command, CommandSpec, CommandBuilder
from .conn import ExecutionContext, Transaction, SqlCon, DbApiCon
from .executor import CommandExecutor
from .audit import Audit, audited
from .adapt_sql import adapt_sql
from .table_creator import create_table
from .json_handler import json_command, spec_from_payload
from .reader import read_table

__all__ = [
    'Dialect', 'get_dialect', 'register_dialect',
    'Command', 'CommandSpec', 'CommandBuilder',
    'ExecutionContext', 'Transaction', 'SqlCon', 'DbApiCon',
    'CommandExecutor', 'Audit', 'audited', 'adapt_sql', 'create_table',
    'json_command', 'spec_from_payload', 'read_table'
]
