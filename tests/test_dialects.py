"""
Tests for dialect quoting, multi-row INSERT and merge syntax.

Run with: pytest tests/test_dialects.py -v
"""
import pytest

from sqlcmd import Dialect, get_dialect, register_dialect
from sqlcmd.dialects import MssqlDialect, aliases, dialects
from tablekit import ValidationError

ROWS = [{"Id": "Id_0", "Name": "Name_0"}, {"Id": "Id_1", "Name": "Name_1"}]


class TestQuote:

    @pytest.mark.parametrize("dialect, raw, quoted", [
        ("mssql", "Orders", "[Orders]"),
        ("mssql", "A]B", "[A]]B]"),
        ("postgresql", 'a"b', '"a""b"'),
        ("sqlite", "first name", '"first name"'),
        ("mysql", "a`b", "`a``b`"),
        ("oracle", "Orders", '"Orders"'),
    ])
    def test_quote(self, dialect, raw, quoted) -> None:
        assert get_dialect(dialect).quote(raw) == quoted

    @pytest.mark.parametrize("dialect", ["mssql", "postgresql", "mysql"])
    def test_quote_is_idempotent(self, dialect) -> None:
        d = get_dialect(dialect)
        once = d.quote("Order Lines")
        assert d.quote(once) == once

    @pytest.mark.parametrize("dialect, raw, quoted", [
        ("sqlite", '"Id" = 1 OR 1=1 OR "Id"', '"""Id"" = 1 OR 1=1 OR ""Id"""'),
        ("mssql", "[a]; DROP TABLE t; --[b]", "[[a]]; DROP TABLE t; --[b]]]"),
        ("postgresql", '""', '""""""'),
        ("mssql", "[]", "[[]]]"),
    ])
    def test_unbalanced_delimiters_are_escaped(self, dialect, raw, quoted) -> None:
        assert get_dialect(dialect).quote(raw) == quoted

    def test_doubled_delimiters_pass_through(self) -> None:
        assert get_dialect("mssql").quote("[A]]B]") == "[A]]B]"
        assert get_dialect("postgresql").quote('"a""b"') == '"a""b"'

    @pytest.mark.parametrize("raw", [":x", "[:x]", "a:b"])
    def test_colon_rejected(self, raw) -> None:
        with pytest.raises(ValidationError, match=":"):
            get_dialect("mssql").quote(raw)

    @pytest.mark.parametrize("bad", ["", "  ", None])
    def test_blank_identifier(self, bad) -> None:
        with pytest.raises(ValidationError):
            get_dialect("mssql").quote(bad)


class TestRegistry:

    @pytest.mark.parametrize("name, expected", [
        ("default", "mssql"),
        (None, "mssql"),
        ("SqlServer", "mssql"),
        ("postgres", "postgresql"),
        ("postgresql+psycopg2", "postgresql"),
        ("mariadb", "mysql"),
        ("sqlite", "sqlite"),
    ])
    def test_get_dialect(self, name, expected) -> None:
        assert get_dialect(name).name == expected

    def test_instance_passes_through(self) -> None:
        d = MssqlDialect()
        assert get_dialect(d) is d

    def test_unknown_dialect(self) -> None:
        with pytest.raises(ValidationError):
            get_dialect("db2")

    def test_register_dialect(self, monkeypatch) -> None:
        monkeypatch.setattr("sqlcmd.dialects.dialects", dict(dialects))
        monkeypatch.setattr("sqlcmd.dialects.aliases", dict(aliases))

        class Db2Dialect(Dialect):
            name = "db2"

        register_dialect(Db2Dialect(), "ibm")
        assert get_dialect("IBM").name == "db2"

    def test_base_dialect_has_no_merge(self) -> None:
        with pytest.raises(NotImplementedError):
            Dialect().merge_sql("T", ["Id"], ["Id"], [], ROWS[:1])


class TestInsertRows:

    def test_multi_row_values(self) -> None:
        sql = get_dialect("sqlite").insert_rows_sql("T", ["Id", "Name"], ROWS)
        assert sql == 'INSERT INTO "T" ("Id", "Name") VALUES (:Id_0, :Name_0), (:Id_1, :Name_1)'

    def test_mssql_terminator(self) -> None:
        sql = get_dialect("mssql").insert_rows_sql("T", ["Id"], ROWS)
        assert sql == "INSERT INTO [T] ([Id]) VALUES (:Id_0), (:Id_1);"

    def test_oracle_insert_all(self) -> None:
        sql = get_dialect("oracle").insert_rows_sql("T", ["Id"], ROWS)
        assert sql == 'INSERT ALL INTO "T" ("Id") VALUES (:Id_0) INTO "T" ("Id") VALUES (:Id_1) SELECT * FROM DUAL'


class TestMergeSql:

    def test_mssql_merge(self) -> None:
        sql = get_dialect("mssql").merge_sql("T", ["Id", "Name"], ["Id"], ["Name"], ROWS)
        assert sql == (
            "MERGE INTO [T] AS target USING ("
            "SELECT :Id_0 AS [Id], :Name_0 AS [Name] UNION ALL SELECT :Id_1 AS [Id], :Name_1 AS [Name]"
            ") AS source ON (target.[Id] = source.[Id]) "
            "WHEN MATCHED THEN UPDATE SET target.[Name] = source.[Name] "
            "WHEN NOT MATCHED THEN INSERT ([Id], [Name]) VALUES (source.[Id], source.[Name]);"
        )

    def test_mssql_merge_keys_only(self) -> None:
        sql = get_dialect("mssql").merge_sql("T", ["Id"], ["Id"], [], ROWS[:1])
        assert "WHEN MATCHED" not in sql
        assert "WHEN NOT MATCHED THEN INSERT ([Id])" in sql

    def test_oracle_merge_selects_from_dual(self) -> None:
        sql = get_dialect("oracle").merge_sql("T", ["Id", "Name"], ["Id"], ["Name"], ROWS[:1])
        assert sql.startswith('MERGE INTO "T" target USING (SELECT :Id_0 AS "Id", :Name_0 AS "Name" FROM dual) source')
        assert not sql.endswith(";")

    def test_postgres_on_conflict(self) -> None:
        sql = get_dialect("postgresql").merge_sql("T", ["Id", "Name"], ["Id"], ["Name"], ROWS)
        assert sql.endswith('ON CONFLICT ("Id") DO UPDATE SET "Name" = EXCLUDED."Name"')

    def test_sqlite_do_nothing_without_updates(self) -> None:
        sql = get_dialect("sqlite").merge_sql("T", ["Id"], ["Id"], [], ROWS[:1])
        assert sql == 'INSERT INTO "T" ("Id") VALUES (:Id_0) ON CONFLICT ("Id") DO NOTHING'

    def test_mysql_duplicate_key(self) -> None:
        d = get_dialect("mysql")
        sql = d.merge_sql("T", ["Id", "Name"], ["Id"], ["Name"], ROWS[:1])
        assert sql.endswith("ON DUPLICATE KEY UPDATE `Name` = VALUES(`Name`)")
        keys_only = d.merge_sql("T", ["Id"], ["Id"], [], ROWS[:1])
        assert keys_only.endswith("ON DUPLICATE KEY UPDATE `Id` = `Id`")
