"""
Paging and query filter types.

A QueryFilter carries both the query (filter + sort) and the page window
plus server-side time limits, so one object describes a paged read.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")

SortSpec = List[Tuple[str, int]]


@dataclass
class PaginationOptions:
    """
    Page window and query constraints.

    Attributes:
        page_size: Maximum items per page (0 = no limit)
        skip: Number of matching documents to skip
        max_execution_time: Server-side time limit for the query
        max_await_time: Maximum time to wait for new data on awaitable cursors
    """
    page_size: int = 50
    skip: int = 0
    max_execution_time: Optional[timedelta] = None
    max_await_time: Optional[timedelta] = None

    def __post_init__(self):
        if self.page_size < 0:
            raise ValueError(f"page_size must be >= 0, got {self.page_size}")
        if self.skip < 0:
            raise ValueError(f"skip must be >= 0, got {self.skip}")

    def query_options(self) -> Dict[str, int]:
        """Driver keyword arguments for the configured time limits."""
        options = {}
        if self.max_execution_time:
            options["maxTimeMS"] = int(self.max_execution_time.total_seconds() * 1000)
        if self.max_await_time:
            options["maxAwaitTimeMS"] = int(self.max_await_time.total_seconds() * 1000)
        return options


@dataclass
class QueryFilter(PaginationOptions, ABC):
    """Paged query over a collection."""

    @abstractmethod
    def to_filter(self) -> Dict[str, Any]:
        """MongoDB filter document."""
        pass

    @abstractmethod
    def to_sort(self) -> Optional[SortSpec]:
        """Sort as (field, direction) pairs, or None for natural order."""
        pass


@dataclass
class DocumentQueryFilter(QueryFilter):
    """QueryFilter built from a plain filter document and sort list."""

    filter: Dict[str, Any] = field(default_factory=dict)
    sort: Optional[SortSpec] = None

    def to_filter(self) -> Dict[str, Any]:
        return dict(self.filter)

    def to_sort(self) -> Optional[SortSpec]:
        return self.sort


@dataclass
class PagedResult(Generic[T]):
    """One page of results plus the total number of matches."""

    items: List[T]
    total_count: int
    page_size: int
    skip: int

    @property
    def has_more(self) -> bool:
        return self.skip + len(self.items) < self.total_count
