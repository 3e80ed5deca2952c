"""Execution contexts (SQLAlchemy and raw DB-API) and caller-scoped transactions."""

import logging
import sys
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.engine.url import make_url

from tablekit.errors import TransactionError
from .adapt_sql import adapt_sql
from .audit import Audit, audited

logger = logging.getLogger(__name__)


class Transaction(ABC):
    """Caller-scoped transaction passed into execution calls.

    commit() and rollback() may each be called once; abort() rolls back if
    still active and never raises. As a context manager it commits on a clean
    exit and aborts when the block raises.
    """
    def __init__(self, connection: Any):
        self.connection = connection
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def check(self):
        if not self._active:
            raise TransactionError('transaction is no longer active')

    @abstractmethod
    def _commit(self):
        ...

    @abstractmethod
    def _rollback(self):
        ...

    def _close(self):
        pass

    def _finish(self, action):
        self.check()
        try:
            action()
        finally:
            self._active = False
            self._close()

    def commit(self):
        self._finish(self._commit)

    def rollback(self):
        self._finish(self._rollback)

    def abort(self):
        if not self._active:
            return
        try:
            self.rollback()
        except Exception as e:
            logger.warning(f'Rollback during abort failed: {e}')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._active:
            if exc_type is None:
                self.commit()
            else:
                self.abort()
        return False


class SqlAlchemyTransaction(Transaction):
    def __init__(self, connection: Connection, owns_connection: bool):
        super().__init__(connection)
        self._trans = connection.begin()
        self._owns_connection = owns_connection

    def _commit(self):
        self._trans.commit()

    def _rollback(self):
        self._trans.rollback()

    def _close(self):
        if self._owns_connection:
            self.connection.close()


class DbApiTransaction(Transaction):
    """PEP 249 connections open transactions implicitly; this only scopes commit/rollback."""
    def __init__(self, connection: Any, owner: 'DbApiCon'):
        super().__init__(connection)
        self._owner = owner

    def _commit(self):
        self.connection.commit()

    def _rollback(self):
        self.connection.rollback()

    def _close(self):
        if self._owner._tx is self:
            self._owner._tx = None


class ExecutionContext(ABC):
    """Runs SQL text with named parameters and reports affected rows."""
    db: str = 'default'

    @abstractmethod
    def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None,
                transaction: Optional[Transaction] = None) -> int:
        """Bind params (None binds NULL), run sql, return the affected-row count."""

    @abstractmethod
    def begin(self) -> Transaction:
        """Start a transaction the caller commits or rolls back."""

    @abstractmethod
    def fetch_records(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run a query and return its rows as dicts."""

    def _check_tx(self, transaction: Transaction):
        transaction.check()
        if not self._owns_tx(transaction):
            raise TransactionError('transaction belongs to a different connection')

    def _owns_tx(self, transaction: Transaction) -> bool:
        return True


class SqlCon(ExecutionContext):
    """SQLAlchemy execution context over a URL, an Engine or a caller-owned Connection."""
    def __init__(self, bind: Union[str, Engine, Connection], echo: bool = False, debug: bool = False,
                 audit_db: Optional[str] = None):
        self._conn: Optional[Connection] = None
        self._owns_engine = False
        if isinstance(bind, str):
            self.url = make_url(bind)
            self.engine = create_engine(bind, echo=echo, future=True)
            self._owns_engine = True
        elif isinstance(bind, Engine):
            self.engine = bind
            self.url = bind.url
        elif isinstance(bind, Connection):
            self._conn = bind
            self.engine = bind.engine
            self.url = self.engine.url
        else:
            raise TypeError(f'Unsupported bind: {type(bind).__name__}')
        self.debug = debug
        self.audit = audit_db is not None
        self.audit_obj = Audit(audit_db) if self.audit else None
        self.db = self._get_dialect()

    def _get_dialect(self) -> str:
        """Get database dialect from the engine."""
        dialect = self.engine.dialect.name.lower()
        return 'postgresql' if dialect == 'postgres' else dialect

    def _log(self, sql: str, params: Any):
        """Log SQL and params if debug enabled."""
        if self.debug:
            logger.debug(f'SQL: {sql} | Params: {params}')

    def _owns_tx(self, transaction: Transaction) -> bool:
        if not isinstance(transaction, SqlAlchemyTransaction):
            return False
        return transaction.connection.engine is self.engine

    @audited
    def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None,
                transaction: Optional[Transaction] = None) -> int:
        """Execute one statement and return the affected-row count."""
        params = dict(params or {})
        self._log(sql, params)
        stmt = text(sql)
        if transaction is not None:
            self._check_tx(transaction)
            return transaction.connection.execute(stmt, params).rowcount
        if self._conn is not None:
            if self._conn.in_transaction():
                # the caller's open transaction decides commit or rollback
                return self._conn.execute(stmt, params).rowcount
            try:
                count = self._conn.execute(stmt, params).rowcount
            except Exception:
                self._conn.rollback()
                raise
            self._conn.commit()
            return count
        with self.engine.begin() as conn:
            return conn.execute(stmt, params).rowcount

    def begin(self) -> SqlAlchemyTransaction:
        if self._conn is not None:
            return SqlAlchemyTransaction(self._conn, owns_connection=False)
        return SqlAlchemyTransaction(self.engine.connect(), owns_connection=True)

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Context-managed connection for reads; never leaves a read transaction open on a caller's connection."""
        if self._conn is None:
            with self.engine.connect() as conn:
                yield conn
            return
        was_open = self._conn.in_transaction()
        try:
            yield self._conn
        finally:
            if not was_open and self._conn.in_transaction():
                self._conn.rollback()

    def fetch_records(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch query results as a list of dicts."""
        self._log(sql, params)
        with self.connect() as conn:
            return [dict(row) for row in conn.execute(text(sql), dict(params or {})).mappings().all()]

    def fetch_df(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> pd.DataFrame:
        """Fetch query results as DataFrame."""
        self._log(sql, params)
        with self.connect() as conn:
            return pd.read_sql(text(sql), conn, params=dict(params or {}))

    def close(self):
        """Dispose of engine resources created by this context."""
        if self._owns_engine:
            self.engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def _driver_paramstyle(connection: Any) -> str:
    module = sys.modules.get(type(connection).__module__.split('.')[0])
    return getattr(module, 'paramstyle', 'qmark')


class DbApiCon(ExecutionContext):
    """Execution context over a PEP 249 connection (sqlite3, psycopg2, pyodbc, ...)."""
    def __init__(self, connection: Any, dialect: str = 'sqlite', paramstyle: Optional[str] = None,
                 debug: bool = False):
        if connection is None:
            raise TypeError('connection is required')
        self.connection = connection
        self.db = dialect
        self.paramstyle = paramstyle or _driver_paramstyle(connection)
        self.debug = debug
        self._tx: Optional[DbApiTransaction] = None

    def _owns_tx(self, transaction: Transaction) -> bool:
        return isinstance(transaction, DbApiTransaction) and transaction.connection is self.connection

    def _run(self, sql: str, params: Optional[Mapping[str, Any]]):
        query, bound = adapt_sql(sql, params or {}, self.paramstyle)
        if self.debug:
            logger.debug(f'SQL: {query} | Params: {bound}')
        cur = self.connection.cursor()
        try:
            cur.execute(query, bound)
        except Exception:
            cur.close()
            raise
        return cur

    def execute(self, sql: str, params: Optional[Mapping[str, Any]] = None,
                transaction: Optional[Transaction] = None) -> int:
        if transaction is not None:
            self._check_tx(transaction)
        autocommit = transaction is None and self._tx is None
        try:
            cur = self._run(sql, params)
        except Exception:
            if autocommit:
                self.connection.rollback()
            raise
        try:
            count = cur.rowcount
        finally:
            cur.close()
        if autocommit:
            self.connection.commit()
        return count

    def begin(self) -> DbApiTransaction:
        if self._tx is not None and self._tx.active:
            raise TransactionError('a transaction is already open on this connection')
        self._tx = DbApiTransaction(self.connection, self)
        return self._tx

    def fetch_records(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        cur = self._run(sql, params)
        try:
            cols = [d[0] for d in cur.description] if cur.description else []
            return [dict(zip(cols, row)) for row in cur.fetchall()] if cols else []
        finally:
            cur.close()
