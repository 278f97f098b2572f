"""
Paging primitives shared by storage-level and in-memory queries.

Change history is paged with LIMIT/OFFSET in SQL; severity-sorted views are
sorted in Python and sliced with :func:`paginate_in_memory`. Both return the
same :class:`Page`, so a caller cannot tell which strategy served it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True)
class PageRequest:
    """Zero-based page index and page size."""
    page: int = 0
    size: int = 20

    def __post_init__(self) -> None:
        if self.page < 0:
            raise ValueError(f"page must be >= 0, got {self.page}")
        if self.size < 1:
            raise ValueError(f"size must be >= 1, got {self.size}")

    @property
    def offset(self) -> int:
        return self.page * self.size


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 0
    size: int = 20

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

    def map(self, fn: Callable[[T], U]) -> "Page[U]":
        return Page(
            items=[fn(item) for item in self.items],
            total=self.total,
            page=self.page,
            size=self.size,
        )

    @classmethod
    def empty(cls, request: PageRequest) -> "Page[T]":
        return cls(items=[], total=0, page=request.page, size=request.size)


def paginate_in_memory(
    items: Sequence[T],
    request: PageRequest,
    *,
    sort_key: Optional[Callable[[T], object]] = None,
    reverse: bool = False,
) -> Page[T]:
    """
    Sort (optionally) then slice an in-memory sequence.

    ``sorted`` is stable, so items with equal keys keep their input order.
    """
    ordered = sorted(items, key=sort_key, reverse=reverse) if sort_key else list(items)
    start = request.offset
    return Page(
        items=ordered[start:start + request.size],
        total=len(ordered),
        page=request.page,
        size=request.size,
    )
