"""Related-product lookups: similar products and preference recommendations."""
from __future__ import annotations

import logging

from ai.embeddings import EmbeddingService, TaskType
from grocery.config import settings
from grocery.pipelines.fusion import fuse_results
from grocery.pipelines.records import ProductRecord
from grocery.pipelines.retrieval import ProductStore, RetrievalError

logger = logging.getLogger(__name__)


class RecommendationError(Exception):
    """Raised when a recommendation request carries no usable preferences."""
    pass


async def similar_products(
    store: ProductStore,
    product_id: str,
    *,
    threshold: float | None = None,
    limit: int | None = None,
) -> list[ProductRecord]:
    """Products close to `product_id` in embedding space, itself excluded.

    Raises:
        RetrievalError: If the match function fails
    """
    threshold = settings.search.similar_threshold if threshold is None else threshold
    limit = limit or settings.search.similar_limit

    records = await store.find_similar(product_id, threshold=threshold, count=limit)
    return fuse_results(records, limit=limit, seen={product_id})


async def recommend(
    store: ProductStore,
    embedder: EmbeddingService,
    preferences: list[str],
    *,
    limit: int | None = None,
) -> list[ProductRecord]:
    """Recommend products from previously searched or purchased item names.

    Raises:
        RecommendationError: If no preferences are given
        RetrievalError: If the embedding or the match function fails
    """
    cleaned = [p.strip() for p in preferences if p and p.strip()]
    if not cleaned:
        raise RecommendationError("No user preferences provided for recommendations")

    limit = limit or settings.search.default_limit
    combined_query = " ".join(cleaned)

    embedding = await embedder.get_embedding(combined_query, TaskType.QUERY)
    if embedding is None:
        raise RetrievalError("Failed to generate embedding for recommendations")

    records = await store.match_by_embedding_basic(
        embedding,
        threshold=settings.search.recommendation_threshold,
        count=limit,
    )

    logger.info(f"Recommended {len(records)} products from {len(cleaned)} preferences")
    return fuse_results(records, limit=limit)
