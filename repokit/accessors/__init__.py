"""
Query helpers over pymongo collections: paging, text search, change streams.
"""

from .aggregation import aggregate_paged, build_paged_pipeline
from .change_streams import (
    ChangeEvent,
    ChangeOperationType,
    ChangeStreamOptions,
    ChangeStreamWatcher,
    FullDocumentOption,
    UpdateDescription,
    map_change_event,
)
from .paging import DocumentQueryFilter, PagedResult, PaginationOptions, QueryFilter
from .search import (
    TextSearchOptions,
    TextSearchResult,
    build_text_filter,
    search_field,
    text_search,
    text_search_count,
    text_search_with_score,
)

__all__ = [
    "aggregate_paged",
    "build_paged_pipeline",
    "PaginationOptions",
    "QueryFilter",
    "DocumentQueryFilter",
    "PagedResult",
    "TextSearchOptions",
    "TextSearchResult",
    "build_text_filter",
    "text_search",
    "text_search_with_score",
    "search_field",
    "text_search_count",
    "ChangeEvent",
    "ChangeOperationType",
    "ChangeStreamOptions",
    "ChangeStreamWatcher",
    "FullDocumentOption",
    "UpdateDescription",
    "map_change_event",
]
