"""
Facet aggregation helpers.

aggregate_paged() returns the total number of matches and one window of
documents in a single round trip:

    [{"$match": filter},
     {"$facet": {"count": [{"$count": "count"}],
                 "data": [{"$sort": ...}, {"$skip": n}, {"$limit": m}]}}]
"""

from typing import Any, Dict, List, Optional, Tuple

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection

from .paging import SortSpec


def build_paged_pipeline(
    filter: Dict[str, Any],
    sort: Optional[SortSpec],
    skip: int,
    limit: int,
) -> List[Dict[str, Any]]:
    """Build the $match + $facet pipeline used by aggregate_paged()."""
    data_stages: List[Dict[str, Any]] = []
    if sort:
        data_stages.append({"$sort": dict(sort)})
    # $facet sub-pipelines must not be empty, so $skip is always present
    data_stages.append({"$skip": max(skip, 0)})
    if limit > 0:
        data_stages.append({"$limit": limit})

    return [
        {"$match": filter},
        {"$facet": {
            "count": [{"$count": "count"}],
            "data": data_stages,
        }},
    ]


async def aggregate_paged(
    collection: AsyncCollection,
    filter: Dict[str, Any],
    sort: Optional[SortSpec],
    skip: int,
    limit: int,
    session: Optional[AsyncClientSession] = None,
    **kwargs: Any,
) -> Tuple[int, List[Dict[str, Any]]]:
    """
    Count matches and fetch one window of documents in one aggregation.

    Args:
        collection: Collection to query
        filter: MongoDB filter document
        sort: Optional (field, direction) pairs
        skip: Documents to skip
        limit: Maximum documents to return (0 = no limit)
        session: Optional session
        **kwargs: Extra aggregate options (e.g. maxTimeMS)

    Returns:
        Tuple of (total match count, raw documents of the window)
    """
    pipeline = build_paged_pipeline(filter, sort, skip, limit)
    cursor = await collection.aggregate(pipeline, session=session, **kwargs)
    results = await cursor.to_list(length=None)

    if not results:
        return 0, []

    facets = results[0]
    count_docs = facets.get("count") or []
    count = count_docs[0].get("count", 0) if count_docs else 0
    return int(count), list(facets.get("data") or [])
