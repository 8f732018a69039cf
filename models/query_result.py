"""
models/query_result.py
----------------------
Materialized rows returned by a row-producing statement.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional


@dataclass
class QueryResult:
    """
    All rows fetched by one statement.

    Attributes:
        rows: One dict per row, keyed by column name.
        columns: Column names in select-list order.
        rowcount: Row count reported by the driver.
    """
    rows: list[dict] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    rowcount: int = 0

    @property
    def num_rows(self) -> int:
        return len(self.rows)

    def first(self) -> Optional[dict]:
        """The first row, or None if the result is empty."""
        return self.rows[0] if self.rows else None

    def scalar(self, column: Optional[str] = None) -> Any:
        """
        A single value from the first row.

        Args:
            column: Column to read; defaults to the first column.
        """
        row = self.first()
        if row is None:
            return None
        if column is None:
            return next(iter(row.values()), None)
        return row.get(column)

    def column(self, name: str) -> list:
        """Every row's value for one column."""
        return [row.get(name) for row in self.rows]

    def __iter__(self) -> Iterator[dict]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __bool__(self) -> bool:
        # An empty result is still a successful one.
        return True
