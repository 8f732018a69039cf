"""
config.py
---------
Central configuration module. Loads all environment variables
from the .env file and exposes them as typed constants.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def parse_error_mode(raw: str | None) -> bool | str:
    """
    Translate the DB_ERROR_MODE value into the facade's error flag.

    Returns:
        True to log errors and raise on connection failure, False to fail
        silently, or the raw string to log as a custom message.
    """
    if raw is None or not raw.strip():
        return True
    value = raw.strip()
    if value.lower() in ("true", "raise", "1", "yes"):
        return True
    if value.lower() in ("false", "silent", "0", "no"):
        return False
    return value


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "yes", "on")


# ── PostgreSQL ────────────────────────────────────────────
DB_HOST: str = os.getenv("DB_HOST", "localhost")
DB_PORT: int = int(os.getenv("DB_PORT", "5432"))
DB_NAME: str = os.getenv("DB_NAME", "postgres")
DB_USER: str = os.getenv("DB_USER", "postgres")
DB_PASS: str = os.getenv("DB_PASS", "")
DB_CONNECT_TIMEOUT: int = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))

# ── Facade behaviour ──────────────────────────────────────
DB_ERROR_MODE: bool | str = parse_error_mode(os.getenv("DB_ERROR_MODE"))
DB_AUTO_DISCONNECT: bool = _flag("DB_AUTO_DISCONNECT", "true")

# ── Logging ───────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
