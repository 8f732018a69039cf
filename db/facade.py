"""
db/facade.py
------------
Static convenience facade over psycopg2.

`PGDB` exposes CRUD, schema management, aggregates, pagination, batch
insert, transactions and data-cleaning helpers as class methods. Each
method assembles a SQL string (see db/sql_builder.py) and hands it,
together with its bound values, to `PGDB.query`, which screens the text,
executes it on the shared connection and materializes the result.

Usage:
    PGDB.host = "db.internal"
    PGDB.dbname = "shop"
    PGDB.insert("products", {"name": "Pen", "price": 1.5})
    rows = PGDB.select("products", "name, price", {"active": True}, limit=20)
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional, Sequence

import psycopg2
from psycopg2 import extras

import config
from db import sql_builder as sb
from db.connection import (
    ConnectionSettings,
    close_connection,
    get_connection,
    is_open,
    open_connection,
)
from db.errors import (
    ConnectionFailedError,
    DatabaseError,
    QueryFailedError,
    handle_error,
)
from models.page import Page
from models.query_result import QueryResult
from security.sql_guard import is_potentially_malicious
from utils.logger import get_logger
from utils.sanitize import clean_record

logger = get_logger(__name__)

BLOCKED_MESSAGE = "Potential SQL injection attempt detected."
# psycopg2 raises the builtin errors for placeholder/parameter mismatches.
_DRIVER_ERRORS = (psycopg2.Error, IndexError, KeyError, TypeError, ValueError)
_AGGREGATES = ("COUNT", "SUM", "AVG", "MIN", "MAX")


def _as_list(value: str | Sequence[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


class PGDB:
    """Static helper for one PostgreSQL database. Never instantiated."""

    # ── Settings (overridable at runtime) ─────────────────
    host: str = config.DB_HOST
    port: int = config.DB_PORT
    username: str = config.DB_USER
    password: str = config.DB_PASS
    dbname: str = config.DB_NAME
    connect_timeout: int = config.DB_CONNECT_TIMEOUT

    # True: log, and raise when connecting fails. False: fail silently.
    # str: log this message instead of the driver message.
    error: bool | str = config.DB_ERROR_MODE
    auto_disconnect: bool = config.DB_AUTO_DISCONNECT

    last_error: Optional[str] = None
    _in_transaction: bool = False
    _transaction_failed: bool = False

    # ── CONNECTION ────────────────────────────────────────

    @classmethod
    def settings(cls) -> ConnectionSettings:
        return ConnectionSettings(
            host=cls.host,
            port=cls.port,
            dbname=cls.dbname,
            user=cls.username,
            password=cls.password,
            connect_timeout=cls.connect_timeout,
        )

    @classmethod
    def connect(cls) -> bool:
        """
        Open the shared connection if it is not already open.

        Returns:
            True on success, False on failure when the error mode does
            not raise.

        Raises:
            ConnectionFailedError: On failure when the error mode is True.
        """
        try:
            open_connection(cls.settings())
            return True
        except ConnectionFailedError as e:
            cls._fail(e, fatal=True)
            return False

    @classmethod
    def disconnect(cls) -> None:
        """Close the shared connection, rolling back an open transaction."""
        conn = get_connection()
        if conn is not None and cls._in_transaction:
            logger.warning("Disconnecting inside a transaction; rolling back.")
            cls._safe_rollback(conn)
        cls._in_transaction = False
        cls._transaction_failed = False
        close_connection()

    @classmethod
    def close(cls) -> None:
        cls.disconnect()

    @classmethod
    def is_connected(cls) -> bool:
        return is_open()

    # ── ERRORS ────────────────────────────────────────────

    @classmethod
    def get_last_error(cls) -> Optional[str]:
        """Driver or screening message from the most recent failure."""
        return cls.last_error

    @classmethod
    def _fail(cls, error: DatabaseError, fatal: bool = False) -> None:
        cls.last_error = error.message
        handle_error(error, cls.error, fatal)

    @staticmethod
    def _safe_rollback(conn) -> None:
        """Roll back unless the connection is already gone."""
        if conn.closed:
            return
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {str(e).strip()}")

    # ── EXECUTION ─────────────────────────────────────────

    @classmethod
    def query(cls, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult | bool:
        """
        Screen, execute and materialize one statement.

        Args:
            sql: Statement text with ``%s`` placeholders.
            params: Values bound to the placeholders, in order.

        Returns:
            A QueryResult for row-returning statements, True for any other
            successful statement, False on failure.

        Raises:
            ConnectionFailedError: If connecting fails and the error mode is
                True. Statement failures return False in every mode.
        """
        bound = list(params) if params else None

        def run(cur):
            cur.execute(sql.strip(), bound)
            return cls._materialize(cur)

        return cls._execute(sql, run)

    @classmethod
    def specific_select(cls, sql: str, params: Optional[Sequence[Any]] = None) -> QueryResult | bool:
        """Run a hand-written SELECT."""
        return cls.query(sql, params)

    @classmethod
    def _execute(cls, sql: str, runner):
        cls.last_error = None
        if is_potentially_malicious(sql):
            cls.last_error = BLOCKED_MESSAGE
            return False

        conn = get_connection()
        if conn is None:
            if not cls.connect():
                return False
            conn = get_connection()

        logger.debug(f"SQL: {sql.strip()}")
        try:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                result = runner(cur)
            if not cls._in_transaction:
                conn.commit()
            return result
        except _DRIVER_ERRORS as e:
            if cls._in_transaction:
                cls._transaction_failed = True
            else:
                cls._safe_rollback(conn)
            cls._fail(QueryFailedError(f"Error: {str(e).strip()}"))
            return False
        finally:
            cls._release()

    @staticmethod
    def _materialize(cur) -> QueryResult | bool:
        if cur.description is None:
            return True
        rows = [dict(row) for row in cur.fetchall()]
        columns = [desc[0] for desc in cur.description]
        return QueryResult(rows=rows, columns=columns, rowcount=cur.rowcount)

    @classmethod
    def _release(cls) -> None:
        if cls.auto_disconnect and not cls._in_transaction:
            close_connection()

    # ── READ ──────────────────────────────────────────────

    @classmethod
    def select(
        cls,
        table: str,
        columns: str | Sequence[str] = "*",
        where: Optional[dict] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: str | Sequence[str] | None = None,
        group_by: str | Sequence[str] | None = None,
        joins: Optional[Sequence[str]] = None,
    ) -> QueryResult | bool:
        """
        Select rows matching every equality in `where`.

        Args:
            table: Table to read from.
            columns: Comma-separated string or list; expressions allowed.
            where: column -> value, joined with AND.
            limit: Maximum rows to return.
            offset: Rows to skip (only applied together with `limit`).
            order_by: ``"col"``, ``"col DESC"`` or a list of those.
            group_by: Column(s) to group by.
            joins: Raw JOIN clauses appended after the table name.
        """
        sql, params = sb.build_select(
            table, columns, where, limit, offset, order_by, group_by, joins
        )
        return cls.query(sql, params)

    @classmethod
    def find_by(
        cls,
        table: str,
        columns: str | Sequence[str],
        conditions: dict,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> QueryResult | bool:
        return cls.select(table, columns, conditions, limit, offset)

    @classmethod
    def search(
        cls,
        table: str,
        columns: str | Sequence[str],
        conditions: dict,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: str | Sequence[str] | None = None,
        group_by: str | Sequence[str] | None = None,
        joins: Optional[Sequence[str]] = None,
    ) -> QueryResult | bool:
        """Like `select`, but each condition is a substring match (``LIKE %v%``)."""
        sql, params = sb.build_select(
            table, columns, conditions, limit, offset, order_by, group_by, joins,
            operator="LIKE",
        )
        return cls.query(sql, params)

    @classmethod
    def get_value(cls, table: str, column: str, where: Optional[dict] = None) -> Any:
        """
        A single column value from the first matching row.

        Returns:
            The value, or None when nothing matches or the query failed.
        """
        result = cls.select(table, column, where, limit=1)
        if isinstance(result, QueryResult):
            return result.scalar()
        return None

    @classmethod
    def get_specific_value(cls, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """First column of the first row of a hand-written query, or None."""
        result = cls.specific_select(sql, params)
        if isinstance(result, QueryResult):
            return result.scalar()
        return None

    # ── WRITE ─────────────────────────────────────────────

    @classmethod
    def insert(
        cls,
        table: str,
        data: dict,
        overwrite: bool = False,
        conflict: str | Sequence[str] | None = None,
        match_key: str = "name",
    ) -> QueryResult | bool:
        """
        Insert one row.

        Args:
            table: Target table.
            data: column -> value.
            overwrite: If `match_key` is in `data` and a row with that value
                already exists, update that row instead of inserting.
            conflict: Unique column(s); on a clash the existing row takes the
                new values (``ON CONFLICT ... DO UPDATE``).
            match_key: Column used for the `overwrite` lookup.
        """
        if not data:
            raise ValueError("insert() needs at least one column.")
        if overwrite and match_key in data:
            lookup = {match_key: data[match_key]}
            existing = cls.select(table, "*", lookup, limit=1)
            if existing is False:
                return False
            if existing.num_rows > 0:
                return cls.update(table, data, lookup)

        sql = (
            f"INSERT INTO {sb.quote_identifier(table)} ({sb.column_list(data)}) "
            f"VALUES ({sb.placeholders(len(data))})"
        )
        conflict_keys = _as_list(conflict)
        if conflict_keys:
            sql += f" ON CONFLICT ({sb.column_list(conflict_keys)})"
            updates = [key for key in data if key not in conflict_keys]
            if updates:
                sql += " DO UPDATE SET " + ", ".join(
                    f"{sb.quote_identifier(key)} = EXCLUDED.{sb.quote_identifier(key)}"
                    for key in updates
                )
            else:
                sql += " DO NOTHING"
        return cls.query(sql, list(data.values()))

    @classmethod
    def save(
        cls,
        table: str,
        data: dict,
        check: Optional[Sequence[str]] = None,
        unique_key: str | Sequence[str] | None = None,
    ) -> QueryResult | bool:
        """
        Update the row identified by `check` (or `unique_key`) columns if it
        exists, otherwise insert `data`.

        Raises:
            ValueError: If a unique or check column is missing from `data`.
        """
        unique_keys = _as_list(unique_key)
        for key in unique_keys:
            if key not in data:
                raise ValueError(f"The data dict must contain the '{key}' key.")
        lookup_keys = list(check) if check else unique_keys
        for key in lookup_keys:
            if key not in data:
                raise ValueError(f"The data dict must contain the '{key}' key.")

        if lookup_keys:
            lookup = {key: data[key] for key in lookup_keys}
            existing = cls.select(table, "*", lookup, limit=1)
            if existing is False:
                return False
            if existing.num_rows > 0:
                target = {key: data[key] for key in (unique_keys or lookup_keys)}
                return cls.update(table, data, target)
        return cls.insert(table, data)

    @classmethod
    def update(cls, table: str, data: dict, where: Optional[dict] = None) -> QueryResult | bool:
        """Update rows matching `where`; every row when `where` is empty."""
        if not data:
            raise ValueError("update() needs at least one column to set.")
        where_sql, where_params = sb.where_clause(where)
        sql = f"UPDATE {sb.quote_identifier(table)} SET {sb.assignments(data)}{where_sql}"
        return cls.query(sql, list(data.values()) + where_params)

    @classmethod
    def delete(cls, table: str, where: Optional[dict] = None) -> QueryResult | bool:
        """Delete rows matching `where`; every row when `where` is empty."""
        where_sql, params = sb.where_clause(where)
        return cls.query(f"DELETE FROM {sb.quote_identifier(table)}{where_sql}", params)

    @classmethod
    def delete_by(cls, table: str, conditions: dict) -> QueryResult | bool:
        return cls.delete(table, conditions)

    @classmethod
    def insert_batch(cls, table: str, rows: Sequence[dict], page_size: int = 100) -> int | bool:
        """
        Insert many rows with one multi-row VALUES statement per page.

        Args:
            table: Target table.
            rows: Records sharing the same set of columns.
            page_size: Rows per generated statement.

        Returns:
            Number of rows submitted, or False on failure.

        Raises:
            ValueError: If a row's columns differ from the first row's.
        """
        if not rows:
            return 0
        keys = list(rows[0])
        for index, row in enumerate(rows):
            if set(row) != set(keys):
                raise ValueError(f"Row {index} has columns {sorted(row)}, expected {sorted(keys)}.")
        values = [tuple(row[key] for key in keys) for row in rows]
        sql = f"INSERT INTO {sb.quote_identifier(table)} ({sb.column_list(keys)}) VALUES %s"

        def run(cur):
            extras.execute_values(cur, sql, values, page_size=page_size)
            return len(values)

        inserted = cls._execute(sql, run)
        if inserted is not False:
            logger.info(f"Batch inserted {inserted} rows into {table}")
        return inserted

    # ── SCHEMA ────────────────────────────────────────────

    @classmethod
    def create_table(cls, table_name: str, columns: dict) -> QueryResult | bool:
        """
        Create a table unless it already exists.

        Args:
            table_name: Name of the new table.
            columns: column name -> definition, e.g. ``{"id": "SERIAL PRIMARY KEY"}``.
        """
        if not columns:
            raise ValueError("create_table() needs at least one column.")
        definitions = ", ".join(
            f"{sb.quote_identifier(name)} {definition}" for name, definition in columns.items()
        )
        return cls.query(f"CREATE TABLE IF NOT EXISTS {sb.quote_identifier(table_name)} ({definitions})")

    @classmethod
    def drop_table(cls, table_name: str) -> QueryResult | bool:
        return cls.query(f"DROP TABLE IF EXISTS {sb.quote_identifier(table_name)}")

    @classmethod
    def alter_table(cls, table_name: str, changes: str | Sequence[str]) -> QueryResult | bool:
        """Apply raw alterations, e.g. ``["ADD COLUMN note TEXT", "DROP COLUMN legacy"]``."""
        changes = _as_list(changes)
        if not changes:
            raise ValueError("alter_table() needs at least one change.")
        return cls.query(f"ALTER TABLE {sb.quote_identifier(table_name)} " + ", ".join(changes))

    @classmethod
    def truncate_table(cls, table_name: str) -> QueryResult | bool:
        return cls.query(f"TRUNCATE TABLE {sb.quote_identifier(table_name)}")

    @classmethod
    def columns(
        cls,
        table: str,
        filter: str | Sequence[str] | None = None,
        skip: str | Sequence[str] | None = None,
    ) -> list[str]:
        """
        Column names of a table in ordinal order.

        Args:
            table: Table name, optionally ``schema.table``.
            filter: Keep only columns containing one of these substrings.
            skip: Drop columns containing any of these substrings.

        Returns:
            Column names; an empty list on failure.
        """
        if "." in table:
            schema, name = table.split(".", 1)
            sql = (
                "SELECT column_name FROM information_schema.columns "
                "WHERE table_schema = %s AND table_name = %s ORDER BY ordinal_position"
            )
            params = [schema, name]
        else:
            sql = (
                "SELECT column_name FROM information_schema.columns "
                "WHERE table_schema = current_schema() AND table_name = %s ORDER BY ordinal_position"
            )
            params = [table]
        result = cls.query(sql, params)
        if not isinstance(result, QueryResult):
            return []

        names = result.column("column_name")
        keep = [pattern.lower() for pattern in _as_list(filter)]
        drop = [pattern.lower() for pattern in _as_list(skip)]
        if keep:
            names = [n for n in names if any(p in n.lower() for p in keep)]
        if drop:
            names = [n for n in names if not any(p in n.lower() for p in drop)]
        return names

    @classmethod
    def tables(cls) -> list[str]:
        """Base tables in the current schema, sorted by name."""
        result = cls.query(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE' "
            "ORDER BY table_name"
        )
        if isinstance(result, QueryResult):
            return result.column("table_name")
        return []

    @classmethod
    def table_exists(cls, table_name: str) -> bool:
        present = cls.get_specific_value(
            "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s) AS present",
            [table_name],
        )
        return bool(present)

    # ── AGGREGATES ────────────────────────────────────────

    @classmethod
    def aggregate(cls, function: str, table: str, column: str = "*", where: Optional[dict] = None) -> Any:
        """
        Run one aggregate function over a table.

        Returns:
            The aggregate value, or None when it is NULL or the query failed.

        Raises:
            ValueError: For functions other than COUNT/SUM/AVG/MIN/MAX.
        """
        function = function.upper()
        if function not in _AGGREGATES:
            raise ValueError(f"Unsupported aggregate function: {function}")
        target = "*" if column == "*" else sb.quote_identifier(column)
        return cls.get_value(table, f"{function}({target}) AS value", where)

    @classmethod
    def count(cls, table: str, where: Optional[dict] = None) -> int:
        value = cls.aggregate("COUNT", table, "*", where)
        return int(value) if value is not None else 0

    @classmethod
    def sum(cls, table: str, column: str, where: Optional[dict] = None) -> Any:
        value = cls.aggregate("SUM", table, column, where)
        return value if value is not None else 0

    @classmethod
    def avg(cls, table: str, column: str, where: Optional[dict] = None) -> Any:
        return cls.aggregate("AVG", table, column, where)

    @classmethod
    def min(cls, table: str, column: str, where: Optional[dict] = None) -> Any:
        return cls.aggregate("MIN", table, column, where)

    @classmethod
    def max(cls, table: str, column: str, where: Optional[dict] = None) -> Any:
        return cls.aggregate("MAX", table, column, where)

    # ── PAGINATION ────────────────────────────────────────

    @classmethod
    def paginate(
        cls,
        table: str,
        columns: str | Sequence[str] = "*",
        where: Optional[dict] = None,
        page: int = 1,
        per_page: int = 10,
        order_by: str | Sequence[str] | None = None,
    ) -> Page | bool:
        """
        One page of rows plus the total row count.

        Args:
            page: 1-based page number; values below 1 are treated as 1.
            per_page: Rows per page, at least 1.

        Returns:
            A Page, or False if the page query failed.
        """
        if per_page < 1:
            raise ValueError("per_page must be at least 1.")
        page = max(1, int(page))
        total = cls.count(table, where)
        result = cls.select(table, columns, where, per_page, (page - 1) * per_page, order_by)
        if not isinstance(result, QueryResult):
            return False
        return Page(items=result.rows, page=page, per_page=per_page, total=total)

    # ── TRANSACTIONS ──────────────────────────────────────

    @classmethod
    def in_transaction(cls) -> bool:
        return cls._in_transaction

    @classmethod
    def begin_transaction(cls) -> bool:
        """
        Start a transaction; the connection stays open until commit or
        rollback.
        """
        cls.last_error = None
        if cls._in_transaction:
            cls._fail(DatabaseError("A transaction is already active."))
            return False
        if not cls.connect():
            return False
        cls._in_transaction = True
        cls._transaction_failed = False
        logger.info("Transaction started.")
        return True

    @classmethod
    def commit(cls) -> bool:
        """
        Commit the active transaction. If a statement inside it failed,
        the transaction is rolled back instead and False is returned.
        """
        return cls._finish_transaction(commit=True)

    @classmethod
    def rollback(cls) -> bool:
        return cls._finish_transaction(commit=False)

    @classmethod
    def _finish_transaction(cls, commit: bool) -> bool:
        action = "commit" if commit else "rollback"
        conn = get_connection()
        if not cls._in_transaction or conn is None:
            logger.warning(f"{action} called with no active transaction.")
            cls._in_transaction = False
            cls._transaction_failed = False
            return False
        try:
            if commit and cls._transaction_failed:
                cls._safe_rollback(conn)
                cls._fail(QueryFailedError("Transaction rolled back after a failed statement."))
                return False
            if commit:
                conn.commit()
            else:
                conn.rollback()
            logger.info(f"Transaction {action} complete.")
            return True
        except psycopg2.Error as e:
            cls._safe_rollback(conn)
            cls._fail(QueryFailedError(f"Error: {str(e).strip()}"))
            return False
        finally:
            cls._in_transaction = False
            cls._transaction_failed = False
            cls._release()

    @classmethod
    @contextmanager
    def transaction(cls) -> Iterator[type["PGDB"]]:
        """
        Run a block inside a transaction.

        Usage:
            with PGDB.transaction():
                PGDB.update("accounts", {"balance": 90}, {"id": 1})
                PGDB.update("accounts", {"balance": 110}, {"id": 2})

        Commits when the block finishes, rolls back and re-raises when it
        raises. A statement that failed inside the block makes the commit
        roll back and raise QueryFailedError, in every error mode.
        """
        if not cls.begin_transaction():
            raise DatabaseError(cls.last_error or "Could not start a transaction.")
        try:
            yield cls
        except BaseException:
            cls.rollback()
            raise
        if not cls.commit():
            raise QueryFailedError(cls.last_error or "Transaction commit failed.")

    # ── DATA CLEANING ─────────────────────────────────────

    @staticmethod
    def clean_data(data: dict, drop_empty: bool = False) -> dict:
        """Normalize string values of a record before writing it."""
        return clean_record(data, drop_empty)

    @classmethod
    def trim_column(cls, table: str, column: str) -> QueryResult | bool:
        """Strip leading and trailing whitespace from every value in a column."""
        col = sb.quote_identifier(column)
        return cls.query(
            f"UPDATE {sb.quote_identifier(table)} SET {col} = TRIM({col}) WHERE {col} <> TRIM({col})"
        )

    @classmethod
    def fill_nulls(cls, table: str, column: str, value: Any) -> QueryResult | bool:
        """Replace NULLs in a column with `value`."""
        col = sb.quote_identifier(column)
        return cls.query(
            f"UPDATE {sb.quote_identifier(table)} SET {col} = %s WHERE {col} IS NULL", [value]
        )

    @classmethod
    def remove_duplicates(cls, table: str, columns: str | Sequence[str], key: str = "id") -> QueryResult | bool:
        """
        Delete rows that repeat another row's values in `columns`, keeping
        the one with the lowest `key`. NULLs compare equal.
        """
        columns = _as_list(columns)
        if not columns:
            raise ValueError("remove_duplicates() needs at least one column.")
        name = sb.quote_identifier(table)
        matches = " AND ".join(
            f"dup.{sb.quote_identifier(c)} IS NOT DISTINCT FROM keep.{sb.quote_identifier(c)}"
            for c in columns
        )
        return cls.query(
            f"DELETE FROM {name} AS dup USING {name} AS keep "
            f"WHERE dup.{sb.quote_identifier(key)} > keep.{sb.quote_identifier(key)} AND {matches}"
        )
