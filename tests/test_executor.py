"""
Tests for CommandExecutor against a recording context and a live sqlite3 connection.

Run with: pytest tests/test_executor.py -v
"""
import sqlite3

import pytest

from sqlcmd import CommandExecutor, CommandSpec, DbApiCon, ExecutionContext
from sqlcmd.conn import DbApiTransaction
from tablekit import TransactionError, ValidationError


class RecordingContext(ExecutionContext):
    """Captures every call and reports a fixed row count."""
    db = "mssql"

    def __init__(self, rowcount: int = 7):
        self.calls = []
        self.rowcount = rowcount

    def execute(self, sql, params=None, transaction=None):
        self.calls.append((sql, dict(params or {}), transaction))
        return self.rowcount

    def begin(self):
        raise NotImplementedError

    def fetch_records(self, sql, params=None):
        return []


def people(con: DbApiCon):
    return con.fetch_records('SELECT "Id", "Name", "Age" FROM "People" ORDER BY "Id"')


# ─── Against a recording context ───────────────────────────────────────────────

class TestExecutorContract:

    def test_returns_context_rowcount(self) -> None:
        ctx = RecordingContext(rowcount=7)
        assert CommandExecutor(ctx).insert("T", {"Id": 1}) == 7
        sql, params, tx = ctx.calls[0]
        assert sql == "INSERT INTO [T] ([Id]) VALUES (:Id);"
        assert params == {"Id": 1}
        assert tx is None

    def test_dialect_from_context(self) -> None:
        assert CommandExecutor(RecordingContext()).dialect.name == "mssql"
        assert CommandExecutor(RecordingContext(), dialect="postgres").dialect.name == "postgresql"

    @pytest.mark.parametrize("call", [
        lambda ex: ex.insert("T", {}),
        lambda ex: ex.update("T", {"A": 1}, {}),
        lambda ex: ex.delete("", {"Id": 1}),
        lambda ex: ex.upsert("T", None, {"Id": 1}),
        lambda ex: ex.insert_range("T", []),
        lambda ex: ex.upsert_range("T", [{"A": 1}], ["Id"]),
    ])
    def test_invalid_input_never_reaches_context(self, call) -> None:
        ctx = RecordingContext()
        with pytest.raises(ValidationError):
            call(CommandExecutor(ctx))
        assert ctx.calls == []

    def test_context_required(self) -> None:
        with pytest.raises(ValidationError):
            CommandExecutor(None)

    def test_run_spec(self) -> None:
        ctx = RecordingContext()
        CommandExecutor(ctx).run("delete", CommandSpec(table="T", keys={"Id": 1}))
        assert ctx.calls[0][0] == "DELETE FROM [T] WHERE [Id] = :key_Id;"

    def test_context_errors_propagate(self) -> None:
        class Failing(RecordingContext):
            def execute(self, sql, params=None, transaction=None):
                raise RuntimeError("connection lost")

        with pytest.raises(RuntimeError, match="connection lost"):
            CommandExecutor(Failing()).insert("T", {"Id": 1})


# ─── Against sqlite3 ───────────────────────────────────────────────────────────

class TestExecutorSqlite:

    def test_insert_update_delete(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        assert ex.insert("People", {"Id": 1, "Name": "Ada", "Age": None}) == 1
        assert ex.update("People", {"Age": 36}, {"Id": 1}) == 1
        assert ex.update("People", {"Age": 1}, {"Id": 99}) == 0
        assert people(dbapi_con) == [{"Id": 1, "Name": "Ada", "Age": 36}]
        assert ex.delete("People", {"Id": 1}) == 1
        assert people(dbapi_con) == []

    def test_insert_range(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        items = [{"Id": i, "Name": f"n{i}"} for i in range(1, 4)]
        assert ex.insert_range("People", items) == 3
        assert [r["Name"] for r in people(dbapi_con)] == ["n1", "n2", "n3"]

    def test_upsert_inserts_then_updates(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        ex.upsert("People", {"Name": "Ada"}, {"Id": 1})
        ex.upsert("People", {"Name": "Ada L."}, {"Id": 1})
        assert people(dbapi_con) == [{"Id": 1, "Name": "Ada L.", "Age": None}]

    def test_upsert_range(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        ex.insert("People", {"Id": 1, "Name": "old", "Age": 5})
        count = ex.upsert_range("People", [{"Id": 1, "Name": "new"}, {"Id": 2, "Name": "added"}], ["Id"])
        assert count == 2
        assert people(dbapi_con) == [
            {"Id": 1, "Name": "new", "Age": 5},
            {"Id": 2, "Name": "added", "Age": None},
        ]

    def test_driver_errors_propagate(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        ex.insert("People", {"Id": 1})
        with pytest.raises(sqlite3.IntegrityError):
            ex.insert("People", {"Id": 1})

    def test_failed_statement_rolls_back_implicit_transaction(self, dbapi_con, sqlite_conn) -> None:
        ex = CommandExecutor(dbapi_con)
        ex.insert("People", {"Id": 1, "Name": "Ada"})
        with pytest.raises(sqlite3.IntegrityError):
            ex.insert_range("People", [{"Id": 2, "Name": "Grace"}, {"Id": 2, "Name": "dup"}])
        assert sqlite_conn.in_transaction is False
        assert people(dbapi_con) == [{"Id": 1, "Name": "Ada", "Age": None}]
        assert ex.insert("People", {"Id": 3, "Name": "Linus"}) == 1
        assert [r["Id"] for r in people(dbapi_con)] == [1, 3]

    def test_failed_statement_leaves_open_transaction_to_caller(self, dbapi_con, sqlite_conn) -> None:
        ex = CommandExecutor(dbapi_con)
        tx = dbapi_con.begin()
        ex.insert("People", {"Id": 1}, transaction=tx)
        with pytest.raises(sqlite3.IntegrityError):
            ex.insert("People", {"Id": 1}, transaction=tx)
        assert tx.active
        tx.commit()
        assert [r["Id"] for r in people(dbapi_con)] == [1]

    def test_delimited_key_cannot_widen_where_clause(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        ex.insert_range("People", [{"Id": 1, "Name": "Ada"}, {"Id": 2, "Name": "Grace"}])
        try:
            deleted = ex.delete("People", {'"Id" = 1 OR 1=1 OR "Id"': 1})
        except sqlite3.OperationalError:
            deleted = 0
        assert deleted == 0
        assert [r["Id"] for r in people(dbapi_con)] == [1, 2]

    def test_paramstyle_from_driver(self, dbapi_con) -> None:
        assert dbapi_con.paramstyle == "qmark"


class TestDbApiTransactions:

    def test_commit(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        with ex.begin() as tx:
            ex.insert("People", {"Id": 1}, transaction=tx)
            ex.insert("People", {"Id": 2}, transaction=tx)
        assert not tx.active
        assert len(people(dbapi_con)) == 2

    def test_rollback(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        tx = ex.begin()
        ex.insert_range("People", [{"Id": 1}, {"Id": 2}], transaction=tx)
        tx.rollback()
        assert people(dbapi_con) == []

    def test_block_error_aborts(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        with pytest.raises(sqlite3.IntegrityError):
            with ex.begin() as tx:
                ex.insert("People", {"Id": 1}, transaction=tx)
                ex.insert("People", {"Id": 1}, transaction=tx)
        assert people(dbapi_con) == []

    def test_untagged_calls_join_open_transaction(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        tx = ex.begin()
        ex.insert("People", {"Id": 1})
        tx.rollback()
        assert people(dbapi_con) == []

    def test_finished_transaction_rejected(self, dbapi_con) -> None:
        ex = CommandExecutor(dbapi_con)
        tx = ex.begin()
        tx.commit()
        with pytest.raises(TransactionError):
            ex.insert("People", {"Id": 1}, transaction=tx)
        with pytest.raises(TransactionError):
            tx.rollback()
        tx.abort()

    def test_one_open_transaction_per_connection(self, dbapi_con) -> None:
        tx = dbapi_con.begin()
        with pytest.raises(TransactionError):
            dbapi_con.begin()
        tx.commit()
        dbapi_con.begin().rollback()

    def test_foreign_transaction_rejected(self, dbapi_con) -> None:
        other = DbApiCon(sqlite3.connect(":memory:"))
        foreign = other.begin()
        with pytest.raises(TransactionError):
            CommandExecutor(dbapi_con).insert("People", {"Id": 1}, transaction=foreign)
        assert isinstance(foreign, DbApiTransaction)
        foreign.abort()
        other.connection.close()
