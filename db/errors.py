"""
db/errors.py
------------
Exception types raised by the database layer, and the handler that
applies the configurable error mode.
"""

from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CUSTOM_MESSAGE = "[An error occurred] "


class DatabaseError(Exception):
    """Base class for every error surfaced by the facade."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConnectionFailedError(DatabaseError):
    """The driver could not open a connection."""


class QueryFailedError(DatabaseError):
    """The driver raised while preparing or executing a statement."""


def handle_error(error: DatabaseError, mode: bool | str, fatal: bool = False) -> None:
    """
    Apply the error mode to a failure.

    Args:
        error: The failure to report.
        mode: True logs the driver message, and raises `error` when the
            failure is fatal. False does nothing. A string is logged in
            place of the driver message.
        fatal: The caller cannot continue (a failed connection).

    Raises:
        DatabaseError: When mode is True and `fatal` is set.
    """
    if mode is True:
        logger.error(error.message)
        if fatal:
            raise error
        return
    if mode is False:
        return
    custom = mode if isinstance(mode, str) and mode else DEFAULT_CUSTOM_MESSAGE
    logger.error(custom)
