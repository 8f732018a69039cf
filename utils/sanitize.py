"""
utils/sanitize.py
-----------------
Pure cleaning helpers applied to values before they are written.
Nothing here touches the database; see the cleaning section of
db/facade.py for the in-table equivalents.
"""

import re
from typing import Any

_WHITESPACE_RUN = re.compile(r"\s+")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def clean_value(value: Any) -> Any:
    """
    Normalize a single value.

    Strings are stripped, internal whitespace runs collapse to one space,
    and control characters are removed. A string that ends up empty
    becomes None. Any other type is returned unchanged.
    """
    if not isinstance(value, str):
        return value
    cleaned = _CONTROL_CHARS.sub("", value)
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
    return cleaned or None


def clean_record(data: dict, drop_empty: bool = False) -> dict:
    """
    Apply `clean_value` to every value of a column -> value mapping.

    Args:
        data: The record to clean. It is not modified.
        drop_empty: Remove keys whose cleaned value is None.

    Returns:
        A new dict with cleaned values.
    """
    cleaned = {key: clean_value(value) for key, value in data.items()}
    if drop_empty:
        cleaned = {key: value for key, value in cleaned.items() if value is not None}
    return cleaned
