"""Audit trail of executed commands, kept in an SQLite database."""

import functools
import inspect
import logging
import sqlite3
import time
from threading import Lock
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_PARAMS_TEXT = 1000


class Audit:
    """Appends one row per executed statement to the command_log table of an SQLite file."""
    def __init__(self, db: str = 'audit.db'):
        self.db = db
        self.lock = Lock()
        self._ensure_table()

    def _ensure_table(self):
        with self.lock, sqlite3.connect(self.db) as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS command_log (
                    id INTEGER PRIMARY KEY,
                    ts TEXT DEFAULT CURRENT_TIMESTAMP,
                    fn TEXT,
                    operation TEXT,
                    sql TEXT,
                    params TEXT,
                    ok INTEGER,
                    rowcount INTEGER,
                    duration_ms REAL,
                    err TEXT,
                    caller_module TEXT,
                    caller_path TEXT
                )
            ''')

    def log(self, fn: str, sql: str, params: str, ok: bool, rowcount: Optional[int] = None,
            duration_ms: Optional[float] = None, err: Optional[str] = None,
            caller: Tuple[str, str] = ('unknown', 'unknown')):
        """Record one statement and its outcome."""
        operation = sql.split(None, 1)[0].upper() if sql and sql.strip() else None
        with self.lock, sqlite3.connect(self.db) as conn:
            conn.execute('''
                INSERT INTO command_log (fn, operation, sql, params, ok, rowcount, duration_ms, err,
                                         caller_module, caller_path)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (fn, operation, sql, params, int(ok), rowcount, duration_ms, err, caller[0], caller[1]))

    def entries(self, limit: int = 100, failed_only: bool = False) -> List[Dict[str, Any]]:
        """Most recent rows, newest first."""
        where = 'WHERE ok = 0 ' if failed_only else ''
        with self.lock, sqlite3.connect(self.db) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(f'SELECT * FROM command_log {where}ORDER BY id DESC LIMIT ?', (limit,)).fetchall()
        return [dict(r) for r in rows]


def _caller() -> Tuple[str, str]:
    """Module name and file of the code that called the audited method."""
    try:
        frame = inspect.stack()[2]
        module = inspect.getmodule(frame[0])
        return (module.__name__ if module else '__main__'), frame.filename
    except Exception as e:
        logger.warning(f"Failed to extract caller info: {e}")
        return 'unknown', 'unknown'


def audited(fn):
    """Wrap an execute(sql, params, ...) method; a no-op unless the instance has auditing on."""
    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        if not self.audit:
            return fn(self, *args, **kwargs)
        sql = args[0] if args else kwargs.get('sql', '')
        params = str(args[1] if len(args) > 1 else kwargs.get('params', {}))[:MAX_PARAMS_TEXT]
        caller = _caller()
        started = time.perf_counter()
        try:
            result = fn(self, *args, **kwargs)
        except Exception as e:
            elapsed = (time.perf_counter() - started) * 1000
            self.audit_obj.log(fn.__name__, sql, params, False, duration_ms=elapsed, err=str(e), caller=caller)
            raise
        elapsed = (time.perf_counter() - started) * 1000
        rowcount = result if isinstance(result, int) else None
        self.audit_obj.log(fn.__name__, sql, params, True, rowcount=rowcount, duration_ms=elapsed, caller=caller)
        return result
    return wrapper
