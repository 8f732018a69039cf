import re

import psycopg2
import pytest
from psycopg2 import extras

from db import connection
from db.facade import PGDB

_ROW_RETURNING = re.compile(r"^\s*(SELECT|WITH)\b|\bRETURNING\b", re.IGNORECASE)


class FakeDatabase:
    """Shared state behind every fake connection opened during a test."""

    def __init__(self):
        self.executed: list[tuple[str, object]] = []
        self.results: list[list[dict]] = []
        self.connections: list["FakeConnection"] = []
        self.connect_kwargs: dict | None = None
        self.connect_error: str | None = None
        self.fail_next: Exception | None = None
        self.fail_rollback: Exception | None = None
        self.page_sizes: list[int] = []
        self.commits = 0
        self.rollbacks = 0

    def queue(self, *results: list[dict]) -> None:
        """Rows returned by the next row-producing statements, in order."""
        self.results.extend(results)

    def connect(self, **kwargs):
        if self.connect_error:
            raise psycopg2.OperationalError(self.connect_error)
        self.connect_kwargs = kwargs
        conn = FakeConnection(self)
        self.connections.append(conn)
        return conn

    @property
    def last(self) -> tuple[str, object]:
        return self.executed[-1]


class FakeCursor:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.description = None
        self.rowcount = -1
        self._rows: list[dict] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        self.db.executed.append((sql, params))
        if self.db.fail_next is not None:
            error, self.db.fail_next = self.db.fail_next, None
            raise error
        if _ROW_RETURNING.search(sql):
            self._rows = self.db.results.pop(0) if self.db.results else []
            self.description = [(key,) for key in self._rows[0]] if self._rows else []
            self.rowcount = len(self._rows)
        else:
            self.description = None
            self.rowcount = 1

    def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, db: FakeDatabase):
        self.db = db
        self.closed = 0

    def cursor(self, cursor_factory=None):
        return FakeCursor(self.db)

    def commit(self):
        self.db.commits += 1

    def rollback(self):
        self.db.rollbacks += 1
        if self.db.fail_rollback is not None:
            raise self.db.fail_rollback

    def close(self):
        self.closed = 1


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(psycopg2, "connect", db.connect)

    def execute_values(cur, sql, argslist, page_size=100):
        db.page_sizes.append(page_size)
        cur.execute(sql, list(argslist))

    monkeypatch.setattr(extras, "execute_values", execute_values)
    return db


@pytest.fixture(autouse=True)
def _reset_facade(monkeypatch):
    # Class-level state leaks between tests otherwise.
    monkeypatch.setattr(PGDB, "error", True)
    monkeypatch.setattr(PGDB, "auto_disconnect", True)
    PGDB.last_error = None
    PGDB._in_transaction = False
    PGDB._transaction_failed = False
    yield
    PGDB._in_transaction = False
    PGDB._transaction_failed = False
    connection.close_connection()
