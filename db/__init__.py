"""
db/ - Database Layer
====================
The single driver connection, SQL assembly helpers, error types and the
static `PGDB` facade that ties them together.
"""
