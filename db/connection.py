"""
db/connection.py
----------------
Manages the single PostgreSQL connection shared by the facade.
The connection is opened lazily and may be closed after every call;
there is no pooling.
"""

from dataclasses import dataclass

import psycopg2

from db.errors import ConnectionFailedError
from utils.logger import get_logger

logger = get_logger(__name__)

_conn = None


@dataclass
class ConnectionSettings:
    """Credentials and target for the driver connection."""
    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: int = 10

    def to_kwargs(self) -> dict:
        """Keyword arguments for ``psycopg2.connect``."""
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


def open_connection(settings: ConnectionSettings):
    """
    Open the shared connection, or return it if it is already open.

    Args:
        settings: Where and as whom to connect.

    Returns:
        A psycopg2 connection object.

    Raises:
        ConnectionFailedError: If the database is unreachable or rejects
            the credentials.
    """
    global _conn
    if _conn is not None and not _conn.closed:
        return _conn
    try:
        _conn = psycopg2.connect(**settings.to_kwargs())
    except psycopg2.OperationalError as e:
        _conn = None
        raise ConnectionFailedError(f"Error: {str(e).strip()}") from e
    logger.debug(f"Connected to {settings.host}:{settings.port}/{settings.dbname}")
    return _conn


def get_connection():
    """Return the shared connection, or None when it is not open."""
    if _conn is not None and _conn.closed:
        return None
    return _conn


def is_open() -> bool:
    return get_connection() is not None


def close_connection() -> None:
    """Close the shared connection if one is open."""
    global _conn
    if _conn is not None:
        try:
            if not _conn.closed:
                _conn.close()
        except psycopg2.Error as e:
            logger.warning(f"Error while closing connection: {str(e).strip()}")
        finally:
            _conn = None
        logger.debug("Database connection closed.")
