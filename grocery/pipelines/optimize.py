"""Price optimization: the cheapest plausible matches for a product name."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ai.embeddings import EmbeddingService
from grocery.config import settings
from grocery.pipelines.catalog import search_mock_catalog
from grocery.pipelines.normalization import clean_query, parse_price
from grocery.pipelines.records import ProductRecord, SearchMethod
from grocery.pipelines.search import semantic_candidates, text_candidates
from grocery.pipelines.retrieval import ProductStore

logger = logging.getLogger(__name__)


class QueryValidationError(ValueError):
    """Raised when an optimize query is missing, empty, or too long."""
    pass


@dataclass
class PricedProduct:
    """A candidate with its parsed numeric price."""
    record: ProductRecord
    price: float


@dataclass
class PriceRanking:
    """Cheapest matches for a query."""
    query: str
    results: list[PricedProduct] = field(default_factory=list)
    total: int = 0
    method: SearchMethod = SearchMethod.SEMANTIC
    fallback: bool = False

    @property
    def message(self) -> str:
        if not self.results:
            return "No products found matching your query"
        return f"Found {len(self.results)} products sorted by price"


def validate_query(query: object) -> str:
    """Check an optimize query before any backend call.

    Returns:
        The trimmed query

    Raises:
        QueryValidationError: If the query is not a non-empty string within bounds
    """
    if not query or not isinstance(query, str):
        raise QueryValidationError("Query parameter is required and must be a string")

    sanitized = query.strip()
    if not sanitized:
        raise QueryValidationError("Query cannot be empty")

    max_length = settings.search.max_query_length
    if len(sanitized) > max_length:
        raise QueryValidationError(f"Query is too long (max {max_length} characters)")

    return sanitized


def price_candidate(record: ProductRecord) -> PricedProduct | None:
    """Attach a parsed price; None for candidates without a usable price.

    A literal "0" price is kept here and only dropped by the positive-price
    filter in `rank_by_price`.
    """
    numeric = parse_price(record.price)
    if numeric == 0 and record.price != "0":
        return None
    return PricedProduct(record=record, price=numeric)


def rank_by_price(records: list[ProductRecord], top_n: int) -> tuple[list[PricedProduct], int]:
    """Sort candidates by ascending price.

    Returns:
        The `top_n` cheapest priced candidates and the number of priced candidates
    """
    priced = []
    for record in records:
        candidate = price_candidate(record)
        if candidate is not None and candidate.price > 0:
            priced.append(candidate)

    # Stable: equal prices keep similarity order
    priced.sort(key=lambda p: p.price)
    return priced[:top_n], len(priced)


async def optimize_prices(
    store: ProductStore,
    embedder: EmbeddingService,
    query: object,
) -> PriceRanking:
    """Return the cheapest plausible matches for a product name.

    Steps:
    1. Validate the query
    2. Retrieve a permissive pool of similarity matches
    3. Parse prices, drop unpriced candidates
    4. Sort ascending, keep the cheapest

    Args:
        store: Product store bound to the request session
        embedder: Embedding service
        query: Raw query value from the request

    Returns:
        PriceRanking with the cheapest matches

    Raises:
        QueryValidationError: If the query is invalid
    """
    sanitized = validate_query(query)
    cleaned = clean_query(sanitized)
    pool_size = settings.search.optimize_candidates
    top_n = settings.search.optimize_top_n

    method = SearchMethod.SEMANTIC
    fallback = False
    candidates = await semantic_candidates(
        store,
        embedder,
        cleaned,
        threshold=settings.search.optimize_threshold,
        count=pool_size,
    )

    if candidates is None:
        method = SearchMethod.TEXT
        candidates = await text_candidates(store, cleaned, limit=pool_size)

    if candidates is None:
        logger.warning(f"All price backends failed for {cleaned!r}, using offline catalog")
        fallback = True
        candidates = search_mock_catalog(cleaned)

    cheapest, total = rank_by_price(candidates, top_n)
    logger.info(
        f"Price ranking for {sanitized!r}: {len(candidates)} candidates, "
        f"{total} priced, returning {len(cheapest)}"
    )

    return PriceRanking(
        query=sanitized,
        results=cheapest,
        total=total,
        method=method,
        fallback=fallback,
    )
