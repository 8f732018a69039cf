"""
security/sql_guard.py
---------------------
Regex blocklist for a handful of well-known SQL injection patterns.
Only the SQL text is inspected; bound parameter values never reach it.
"""

import re

from utils.logger import get_logger

logger = get_logger(__name__)

BLOCKED_PATTERNS: list[re.Pattern] = [
    re.compile(r"--"),                                # line comment
    re.compile(r";"),                                 # statement terminator / stacking
    re.compile(r"/\*"),                               # block comment start
    re.compile(r"union\s+select", re.IGNORECASE),
    re.compile(r"sleep\(\d+\)", re.IGNORECASE),       # also catches pg_sleep(n)
    re.compile(r"benchmark\(", re.IGNORECASE),
    re.compile(r"\bOR\b\s+\d+\s*=\s*\d+", re.IGNORECASE),
    re.compile(r"exec\s+xp_", re.IGNORECASE),
]


def is_potentially_malicious(sql: str) -> bool:
    """
    Check a SQL string against the blocklist.

    Returns:
        True if any blocked pattern is present.
    """
    for pattern in BLOCKED_PATTERNS:
        if pattern.search(sql):
            logger.warning(f"Potential SQL injection attempt detected (pattern {pattern.pattern!r}).")
            return True
    return False
