"""Executes built DML through an injected execution context."""

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from tablekit.errors import ValidationError
from .command_builder import Command, CommandBuilder, CommandSpec
from .conn import ExecutionContext, Transaction
from .dialects import Dialect

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Builds INSERT/UPDATE/UPSERT/DELETE from key/value maps and runs them.

    Every statement goes through execute(), which returns the affected-row
    count reported by the context. Errors from the context propagate
    unchanged; nothing is retried. A transaction from begin() can be passed to
    any call; committing or rolling it back is up to the caller.
    """
    def __init__(self, context: ExecutionContext, dialect: Union[str, Dialect, None] = None):
        if context is None:
            raise ValidationError('execution context is required')
        self.context = context
        self.builder = CommandBuilder(dialect or getattr(context, 'db', None) or 'default')

    @property
    def dialect(self) -> Dialect:
        return self.builder.dialect

    def begin(self) -> Transaction:
        """Start a caller-scoped transaction on the underlying context."""
        return self.context.begin()

    def execute(self, command: Command, transaction: Optional[Transaction] = None) -> int:
        """Run a built command and return the affected-row count."""
        sql, params = command
        logger.debug(f'Executing on {self.dialect.name}: {sql[:200]} ({len(params)} params)')
        return self.context.execute(sql, params, transaction=transaction)

    def insert(self, table: str, values: Mapping[str, Any], transaction: Optional[Transaction] = None) -> int:
        return self.execute(self.builder.insert(table, values), transaction)

    def update(self, table: str, values: Mapping[str, Any], keys: Mapping[str, Any],
               transaction: Optional[Transaction] = None) -> int:
        return self.execute(self.builder.update(table, values, keys), transaction)

    def upsert(self, table: str, values: Mapping[str, Any], keys: Mapping[str, Any],
               transaction: Optional[Transaction] = None) -> int:
        return self.execute(self.builder.upsert(table, values, keys), transaction)

    def delete(self, table: str, keys: Mapping[str, Any], transaction: Optional[Transaction] = None) -> int:
        return self.execute(self.builder.delete(table, keys), transaction)

    def insert_range(self, table: str, items: Sequence[Mapping[str, Any]],
                     transaction: Optional[Transaction] = None) -> int:
        return self.execute(self.builder.insert_range(table, items), transaction)

    def upsert_range(self, table: str, items: Sequence[Mapping[str, Any]], key_columns: Sequence[str],
                     transaction: Optional[Transaction] = None) -> int:
        return self.execute(self.builder.upsert_range(table, items, key_columns), transaction)

    def run(self, operation: str, spec: CommandSpec, transaction: Optional[Transaction] = None) -> int:
        """Build and execute a CommandSpec for the named operation."""
        return self.execute(self.builder.build(operation, spec), transaction)
