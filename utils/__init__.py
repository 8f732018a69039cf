"""
utils/ - Shared Helpers
=======================
Logging setup and pure data-cleaning functions with no database access.
"""
