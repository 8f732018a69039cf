import psycopg2
import pytest

from db.errors import DatabaseError, QueryFailedError
from db.facade import PGDB


def test_transaction_commits_once_and_keeps_connection(fake_db):
    with PGDB.transaction():
        assert PGDB.in_transaction()
        PGDB.update("accounts", {"balance": 90}, {"id": 1})
        PGDB.update("accounts", {"balance": 110}, {"id": 2})
        assert PGDB.is_connected()

    assert len(fake_db.connections) == 1
    assert len(fake_db.executed) == 2
    assert fake_db.commits == 1
    assert fake_db.rollbacks == 0
    assert not PGDB.in_transaction()
    assert not PGDB.is_connected()


def test_transaction_rolls_back_and_reraises(fake_db):
    with pytest.raises(RuntimeError):
        with PGDB.transaction():
            PGDB.delete("accounts", {"id": 1})
            raise RuntimeError("abort")

    assert fake_db.commits == 0
    assert fake_db.rollbacks == 1
    assert not PGDB.in_transaction()
    assert fake_db.connections[0].closed


def test_failed_statement_inside_transaction_rolls_back_on_commit(fake_db):
    fake_db.fail_next = psycopg2.IntegrityError("duplicate key value")
    with pytest.raises(QueryFailedError):
        with PGDB.transaction():
            assert PGDB.insert("accounts", {"id": 1}) is False
            assert PGDB.in_transaction()
            PGDB.insert("accounts", {"id": 2})
    assert PGDB.last_error == "Transaction rolled back after a failed statement."
    assert fake_db.rollbacks == 1
    assert fake_db.commits == 0
    assert not PGDB.in_transaction()
    assert not PGDB.is_connected()


def test_manual_commit_after_failed_statement_returns_false(fake_db, monkeypatch):
    monkeypatch.setattr(PGDB, "error", False)
    PGDB.begin_transaction()
    fake_db.fail_next = psycopg2.IntegrityError("duplicate key value")
    assert PGDB.insert("accounts", {"id": 1}) is False
    assert fake_db.rollbacks == 0
    assert PGDB.commit() is False
    assert fake_db.rollbacks == 1
    assert fake_db.commits == 0


def test_manual_begin_commit(fake_db):
    assert PGDB.begin_transaction() is True
    PGDB.insert("audit", {"event": "login"})
    assert fake_db.commits == 0
    assert PGDB.commit() is True
    assert fake_db.commits == 1
    assert not PGDB.is_connected()


def test_begin_twice_fails(fake_db, monkeypatch):
    monkeypatch.setattr(PGDB, "error", False)
    assert PGDB.begin_transaction() is True
    assert PGDB.begin_transaction() is False
    assert PGDB.last_error == "A transaction is already active."
    assert PGDB.rollback() is True


def test_commit_without_transaction(fake_db):
    assert PGDB.commit() is False
    assert PGDB.rollback() is False


def test_disconnect_inside_transaction_rolls_back(fake_db):
    PGDB.begin_transaction()
    PGDB.disconnect()
    assert fake_db.rollbacks == 1
    assert not PGDB.in_transaction()
    assert not PGDB.is_connected()


def test_transaction_start_failure_raises(fake_db, monkeypatch):
    monkeypatch.setattr(PGDB, "error", False)
    fake_db.connect_error = "could not connect to server"
    with pytest.raises(DatabaseError):
        with PGDB.transaction():
            pass


def test_disconnect_survives_failing_rollback(fake_db):
    PGDB.begin_transaction()
    fake_db.fail_rollback = psycopg2.InterfaceError("connection already closed")
    PGDB.disconnect()
    assert fake_db.rollbacks == 1
    assert not PGDB.in_transaction()
    assert not PGDB.is_connected()
    assert fake_db.connections[0].closed
