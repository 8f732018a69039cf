"""
models/page.py
--------------
Pagination envelope returned by `PGDB.paginate`.
"""

import math
from dataclasses import dataclass, field


@dataclass
class Page:
    """One page of rows plus the numbers needed to navigate."""
    items: list[dict] = field(default_factory=list)
    page: int = 1
    per_page: int = 10
    total: int = 0

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page
