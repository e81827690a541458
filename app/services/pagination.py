"""
Pagination over already-computed result lists.

Dashboard lists are filtered and ranked in Python after the whole team
has been computed, so slicing happens here rather than in SQL.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def meta(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "total_pages": self.total_pages,
            "has_next_page": self.page < self.total_pages,
            "has_prev_page": self.page > 1,
        }


def paginate(items: Sequence[T], page: int, limit: int) -> Page[T]:
    skip = (page - 1) * limit
    return Page(items=list(items[skip : skip + limit]), page=page, limit=limit, total=len(items))
