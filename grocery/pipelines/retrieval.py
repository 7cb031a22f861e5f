"""Product retrieval against the hosted Postgres + pgvector catalog.

Wraps the server-side vector-match functions and ILIKE text search behind
`ProductStore`, one instance per request session.
"""
from __future__ import annotations

import logging
from typing import Sequence

from sqlalchemy import func, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from grocery import models
from grocery.config import settings
from grocery.pipelines.normalization import escape_like
from grocery.pipelines.records import ProductRecord

logger = logging.getLogger(__name__)

# Connection failures surface as OSError from the driver before SQLAlchemy wraps them
DB_ERRORS = (SQLAlchemyError, OSError)


class RetrievalError(Exception):
    """Raised when a catalog query fails."""
    pass


def _vector_literal(embedding: Sequence[float]) -> str:
    """Render an embedding in pgvector's text input format."""
    return "[" + ",".join(repr(float(v)) for v in embedding) + "]"


class ProductStore:
    """Read-only access to the `products` table and its match functions.

    Every method raises `RetrievalError` on database failure so callers can
    decide on a fallback.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def match_by_embedding(
        self,
        embedding: Sequence[float],
        *,
        threshold: float,
        count: int,
        exclude_stores: Sequence[str] | None = None,
    ) -> list[ProductRecord]:
        """Thresholded top-k similarity search with optional store exclusion.

        Args:
            embedding: Query embedding vector
            threshold: Minimum similarity (0-1)
            count: Maximum number of rows
            exclude_stores: Supermarket names the function should skip

        Returns:
            Records sorted by similarity DESC, each carrying `similarity`
        """
        function = settings.search.match_function
        query = text(
            f"SELECT * FROM {function}("
            "CAST(:query_embedding AS vector), :match_threshold, :match_count, "
            "CAST(:exclude_supermarkets AS text[]))"
        )
        params = {
            "query_embedding": _vector_literal(embedding),
            "match_threshold": threshold,
            "match_count": count,
            "exclude_supermarkets": list(exclude_stores) if exclude_stores else None,
        }
        return await self._run_function(function, query, params)

    async def match_by_embedding_basic(
        self,
        embedding: Sequence[float],
        *,
        threshold: float,
        count: int,
    ) -> list[ProductRecord]:
        """Similarity search through the unfiltered match function."""
        function = settings.search.suggestion_match_function
        query = text(
            f"SELECT * FROM {function}("
            "CAST(:query_embedding AS vector), :match_threshold, :match_count)"
        )
        params = {
            "query_embedding": _vector_literal(embedding),
            "match_threshold": threshold,
            "match_count": count,
        }
        return await self._run_function(function, query, params)

    async def find_similar(
        self,
        product_id: str,
        *,
        threshold: float,
        count: int,
    ) -> list[ProductRecord]:
        """Products whose stored embedding is close to the given product's."""
        function = settings.search.similar_function
        query = text(
            f"SELECT * FROM {function}(:target_product_id, :match_threshold, :match_count)"
        )
        params = {
            "target_product_id": product_id,
            "match_threshold": threshold,
            "match_count": count,
        }
        return await self._run_function(function, query, params)

    async def search_text(
        self,
        terms: Sequence[str],
        *,
        limit: int,
        columns: Sequence = models.TEXT_SEARCH_COLUMNS,
    ) -> list[ProductRecord]:
        """Case-insensitive substring search, OR-ing every term over every column.

        Args:
            terms: Lowercase search terms
            limit: Maximum number of rows
            columns: Product columns to match against

        Returns:
            Matching records in database order
        """
        if not terms:
            return []

        conditions = [
            column.ilike(f"%{escape_like(term)}%", escape="\\")
            for term in terms
            for column in columns
        ]
        query = select(*models.PRODUCT_COLUMNS).where(or_(*conditions)).limit(limit)

        try:
            result = await self.session.execute(query)
            rows = result.mappings().all()
        except DB_ERRORS as e:
            await self.session.rollback()
            logger.error(f"Text search failed for terms {list(terms)}: {e}")
            raise RetrievalError(f"Text search failed: {e}") from e

        records = [ProductRecord.from_row(row) for row in rows]
        logger.info(f"Text search returned {len(records)} rows (limit={limit})")
        return records

    async def sample_products(self, limit: int = 3) -> list[ProductRecord]:
        """First few catalog rows, used by diagnostics."""
        query = select(*models.PRODUCT_COLUMNS).limit(limit)
        try:
            result = await self.session.execute(query)
            return [ProductRecord.from_row(row) for row in result.mappings().all()]
        except DB_ERRORS as e:
            await self.session.rollback()
            raise RetrievalError(f"Products query failed: {e}") from e

    async def count_embedded(self) -> int:
        """Number of products with a stored embedding."""
        query = (
            select(func.count())
            .select_from(models.Product)
            .where(models.Product.embedding.is_not(None))
        )
        try:
            result = await self.session.execute(query)
            return int(result.scalar_one())
        except DB_ERRORS as e:
            await self.session.rollback()
            raise RetrievalError(f"Embedding column query failed: {e}") from e

    async def _run_function(self, function: str, query, params: dict) -> list[ProductRecord]:
        try:
            result = await self.session.execute(query, params)
            rows = result.mappings().all()
        except DB_ERRORS as e:
            # Session stays unusable until rolled back
            await self.session.rollback()
            logger.error(f"{function} failed: {e}")
            raise RetrievalError(f"{function} failed: {e}") from e

        records = [ProductRecord.from_row(row) for row in rows]
        logger.info(f"{function} returned {len(records)} rows")
        return records
