"""
Text search helpers.

text_search* require a text index on the collection (see IndexKind.TEXT in
the collection settings). search_field() works without one by using a
regex scan, which is slower but matches partial words.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.collection import AsyncCollection

from ..entities import Entity

T = TypeVar("T")

SCORE_FIELD = "score"
TEXT_SCORE = {"$meta": "textScore"}


@dataclass
class TextSearchOptions:
    """
    Options for text search operations.

    Attributes:
        language: Language for stemming and stop words
        case_sensitive: Whether the search is case sensitive
        diacritic_sensitive: Whether diacritic marks are significant
        limit: Maximum number of results (0 = no limit)
        skip: Number of results to skip
        include_score: Return the relevance score with each document
        sort_by_score: Order results by relevance
    """
    language: str = "english"
    case_sensitive: bool = False
    diacritic_sensitive: bool = False
    limit: int = 100
    skip: int = 0
    include_score: bool = True
    sort_by_score: bool = True


@dataclass
class TextSearchResult(Generic[T]):
    """A matching document and its relevance score (higher is more relevant)."""

    document: T
    score: float


def build_text_filter(
    search_text: str,
    options: Optional[TextSearchOptions] = None,
    filter: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a $text filter, merged with an optional extra filter."""
    options = options or TextSearchOptions()
    text_filter: Dict[str, Any] = {
        "$text": {
            "$search": search_text,
            "$language": options.language,
            "$caseSensitive": options.case_sensitive,
            "$diacriticSensitive": options.diacritic_sensitive,
        }
    }
    if filter:
        text_filter.update(filter)
    return text_filter


def _convert(document: Dict[str, Any], entity_type: Optional[Type[Entity]]) -> Any:
    return entity_type.from_document(document) if entity_type is not None else document


async def text_search(
    collection: AsyncCollection,
    search_text: str,
    options: Optional[TextSearchOptions] = None,
    entity_type: Optional[Type[Entity]] = None,
    filter: Optional[Dict[str, Any]] = None,
    session: Optional[AsyncClientSession] = None,
) -> List[Any]:
    """
    Full-text search ordered by relevance.

    Args:
        collection: Collection with a text index
        search_text: Search terms
        options: Search options (defaults to TextSearchOptions())
        entity_type: Entity class to build from each document; raw dicts if None
        filter: Extra filter ANDed with the text query
        session: Optional session

    Returns:
        Matching documents (or entities)
    """
    options = options or TextSearchOptions()
    cursor = collection.find(build_text_filter(search_text, options, filter), session=session)

    if options.sort_by_score:
        cursor = cursor.sort([(SCORE_FIELD, TEXT_SCORE)])
    if options.skip > 0:
        cursor = cursor.skip(options.skip)
    if options.limit > 0:
        cursor = cursor.limit(options.limit)

    documents = await cursor.to_list(length=None)
    return [_convert(doc, entity_type) for doc in documents]


async def text_search_with_score(
    collection: AsyncCollection,
    search_text: str,
    options: Optional[TextSearchOptions] = None,
    entity_type: Optional[Type[Entity]] = None,
    filter: Optional[Dict[str, Any]] = None,
    session: Optional[AsyncClientSession] = None,
) -> List[TextSearchResult]:
    """
    Full-text search returning each match with its relevance score.

    Results are always ordered by score, highest first.
    """
    options = options or TextSearchOptions()
    pipeline: List[Dict[str, Any]] = [
        {"$match": build_text_filter(search_text, options, filter)},
        {"$addFields": {SCORE_FIELD: TEXT_SCORE}},
        {"$sort": {SCORE_FIELD: TEXT_SCORE}},
    ]
    if options.skip > 0:
        pipeline.append({"$skip": options.skip})
    if options.limit > 0:
        pipeline.append({"$limit": options.limit})

    cursor = await collection.aggregate(pipeline, session=session)
    documents = await cursor.to_list(length=None)

    results = []
    for doc in documents:
        score = float(doc.pop(SCORE_FIELD, 0) or 0)
        results.append(TextSearchResult(document=_convert(doc, entity_type), score=score))
    return results


async def search_field(
    collection: AsyncCollection,
    field_name: str,
    search_text: str,
    case_insensitive: bool = True,
    limit: int = 100,
    entity_type: Optional[Type[Entity]] = None,
    filter: Optional[Dict[str, Any]] = None,
    session: Optional[AsyncClientSession] = None,
) -> List[Any]:
    """Find documents whose field contains search_text (literal substring match)."""
    query: Dict[str, Any] = {
        field_name: {
            "$regex": re.escape(search_text),
            "$options": "i" if case_insensitive else "",
        }
    }
    if filter:
        query.update(filter)

    cursor = collection.find(query, session=session)
    if limit > 0:
        cursor = cursor.limit(limit)
    documents = await cursor.to_list(length=None)
    return [_convert(doc, entity_type) for doc in documents]


async def text_search_count(
    collection: AsyncCollection,
    search_text: str,
    options: Optional[TextSearchOptions] = None,
    filter: Optional[Dict[str, Any]] = None,
    session: Optional[AsyncClientSession] = None,
) -> int:
    """Count documents matching a text search."""
    return await collection.count_documents(
        build_text_filter(search_text, options, filter),
        session=session,
    )
