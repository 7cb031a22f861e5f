"""Autocomplete suggestions: cheap name matches, topped up semantically."""
from __future__ import annotations

import logging

from ai.embeddings import EmbeddingService, TaskType
from grocery import models
from grocery.config import settings
from grocery.pipelines.catalog import search_mock_catalog
from grocery.pipelines.fusion import fuse_results
from grocery.pipelines.normalization import split_terms
from grocery.pipelines.records import ProductRecord
from grocery.pipelines.retrieval import ProductStore, RetrievalError

logger = logging.getLogger(__name__)


def is_too_short(query: str | None) -> bool:
    """Queries that never reach a backend."""
    if not query or not query.strip():
        return True
    return len(query) < settings.search.suggestion_min_chars


async def get_suggestions(
    store: ProductStore,
    embedder: EmbeddingService,
    query: str,
    *,
    limit: int | None = None,
) -> list[ProductRecord]:
    """Partial-match suggestions while the user is typing.

    Name matches come first; when they do not fill `limit`, a similarity
    match with a tighter threshold tops the list up. A failed text query
    switches to the offline catalog; a failed similarity query keeps the
    name matches.

    Args:
        store: Product store bound to the request session
        embedder: Embedding service
        query: Partial query as typed
        limit: Maximum number of suggestions (default from config)

    Returns:
        Suggested products with distinct identifiers
    """
    if is_too_short(query):
        return []

    limit = limit or settings.search.suggestion_limit
    terms = split_terms(query)

    try:
        text_results = await store.search_text(
            terms,
            limit=min(limit, settings.search.suggestion_text_cap),
            columns=(models.Product.name,),
        )
    except RetrievalError as e:
        logger.error(f"Suggestions backend error, falling back to offline catalog: {e}")
        return search_mock_catalog(query, limit=limit)

    seen: set[str] = set()
    suggestions = fuse_results(text_results, limit=limit, seen=seen)

    if len(suggestions) >= limit:
        logger.info(f"Text matches filled {len(suggestions)}/{limit} suggestions")
        return suggestions

    embedding = await embedder.get_embedding(query, TaskType.QUERY)
    if embedding is None:
        logger.warning("Failed to generate embedding for suggestions")
        return suggestions

    try:
        semantic_results = await store.match_by_embedding_basic(
            embedding,
            threshold=settings.search.suggestion_threshold,
            count=limit - len(suggestions) + settings.search.suggestion_extra,
        )
    except RetrievalError as e:
        logger.warning(f"Semantic suggestions failed, keeping text matches: {e}")
        return suggestions

    suggestions += fuse_results(
        semantic_results,
        limit=limit - len(suggestions),
        seen=seen,
    )
    logger.info(f"Returning {len(suggestions)} suggestions for {query!r}")
    return suggestions
