"""Hybrid product search: exact text matches fused with embedding matches.

Falls back semantic -> text -> offline catalog within a single request.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from ai.embeddings import EmbeddingService, TaskType
from grocery.config import settings
from grocery.pipelines.catalog import search_mock_catalog
from grocery.pipelines.fusion import filter_by_store, fuse_results
from grocery.pipelines.normalization import clean_query, split_terms
from grocery.pipelines.records import ProductRecord, SearchMethod, SearchOutcome
from grocery.pipelines.retrieval import ProductStore, RetrievalError

logger = logging.getLogger(__name__)


class SearchMode(str, Enum):
    """Which strategies a search request runs."""
    HYBRID = "hybrid"
    TEXT = "text"
    SEMANTIC = "semantic"


async def semantic_candidates(
    store: ProductStore,
    embedder: EmbeddingService,
    query: str,
    *,
    threshold: float,
    count: int,
    exclude_stores: Sequence[str] | None = None,
) -> list[ProductRecord] | None:
    """Embed the query and run the thresholded similarity match.

    Returns:
        Similarity-ranked records, or None if the embedding or the match failed
    """
    embedding = await embedder.get_embedding(query, TaskType.QUERY)
    if embedding is None:
        logger.warning("Failed to generate embedding, skipping semantic search")
        return None

    try:
        return await store.match_by_embedding(
            embedding,
            threshold=threshold,
            count=count,
            exclude_stores=exclude_stores,
        )
    except RetrievalError as e:
        logger.warning(f"Semantic search unavailable: {e}")
        return None


async def text_candidates(
    store: ProductStore,
    query: str,
    *,
    limit: int,
) -> list[ProductRecord] | None:
    """Run the per-term substring search; None if the query failed."""
    try:
        return await store.search_text(split_terms(query), limit=limit)
    except RetrievalError as e:
        logger.warning(f"Text search unavailable: {e}")
        return None


def _method_for(text_ok: bool, semantic_ok: bool) -> SearchMethod:
    if text_ok and semantic_ok:
        return SearchMethod.COMBINED
    if semantic_ok:
        return SearchMethod.SEMANTIC
    return SearchMethod.TEXT


async def hybrid_search(
    store: ProductStore,
    embedder: EmbeddingService,
    query: str,
    *,
    limit: int | None = None,
    store_filter: str | None = None,
    exclude_stores: Sequence[str] | None = None,
    mode: SearchMode = SearchMode.HYBRID,
) -> SearchOutcome:
    """Produce a ranked, deduplicated list of products for a free-text query.

    Workflow:
    1. Run the text substring search (unless mode is semantic)
    2. Embed the query and run the similarity match (unless mode is text)
    3. Fuse: text matches first, similarity matches fill remaining slots
    4. Apply the store filter, truncate to limit

    Args:
        store: Product store bound to the request session
        embedder: Embedding service
        query: Raw user query
        limit: Maximum number of results (default from config)
        store_filter: Case-insensitive substring the store name must contain
        exclude_stores: Store names the similarity match skips
        mode: Strategies to run

    Returns:
        SearchOutcome tagged with the strategies that produced it
    """
    cleaned = clean_query(query)
    if not cleaned:
        logger.info("Empty query, skipping search")
        return SearchOutcome(query="", method=SearchMethod.EMPTY)

    limit = limit or settings.search.default_limit
    logger.info(f"Searching for {cleaned!r} (limit={limit}, mode={mode.value})")

    text_results: list[ProductRecord] | None = None
    semantic_results: list[ProductRecord] | None = None

    if mode != SearchMode.SEMANTIC:
        text_results = await text_candidates(store, cleaned, limit=limit)

    if mode != SearchMode.TEXT:
        semantic_results = await semantic_candidates(
            store,
            embedder,
            cleaned,
            threshold=settings.search.search_threshold,
            count=limit,
            exclude_stores=exclude_stores,
        )

    if text_results is None and semantic_results is None:
        logger.warning(f"All search backends failed for {cleaned!r}, using offline catalog")
        fallback = filter_by_store(search_mock_catalog(cleaned), store_filter)[:limit]
        return SearchOutcome(
            query=cleaned,
            results=fallback,
            method=SearchMethod.TEXT,
            fallback=True,
            message="Search backend unavailable, showing offline catalog",
        )

    fused = fuse_results(text_results or [], semantic_results or [])
    results = filter_by_store(fused, store_filter)[:limit]

    method = _method_for(text_results is not None, semantic_results is not None)
    logger.info(
        f"Search {cleaned!r}: text={len(text_results or [])}, "
        f"semantic={len(semantic_results or [])}, returned={len(results)} ({method.value})"
    )

    return SearchOutcome(query=cleaned, results=results, method=method)
