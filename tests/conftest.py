"""
Shared fixtures: in-memory SQLite through sqlite3 and file-backed SQLite
through SQLAlchemy, plus sample records.

Run with: pytest tests/ -v
"""
import sqlite3

import pytest

from sqlcmd import DbApiCon, SqlCon

PEOPLE_DDL = """
CREATE TABLE "People" (
    "Id" INTEGER PRIMARY KEY,
    "Name" TEXT,
    "Age" INTEGER
)
"""


@pytest.fixture
def sqlite_conn():
    conn = sqlite3.connect(":memory:")
    conn.execute(PEOPLE_DDL)
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def dbapi_con(sqlite_conn):
    return DbApiCon(sqlite_conn, dialect="sqlite")


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def sa_con(db_url):
    con = SqlCon(db_url)
    con.execute(PEOPLE_DDL)
    yield con
    con.close()


@pytest.fixture
def records():
    return [
        {"Id": 1, "Name": "Ada", "Nick": None},
        {"Id": 2, "Age": 36, "Nick": None},
        {"id": 3, "Name": "Grace", "Email": "grace@example.com"},
    ]
