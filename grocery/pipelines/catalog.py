"""Offline catalog fallback, the lowest-fidelity data source."""
from __future__ import annotations

import logging

from config.mock_catalog import MOCK_CATALOG
from grocery.pipelines.normalization import contains_any
from grocery.pipelines.records import ProductRecord

logger = logging.getLogger(__name__)


def load_mock_catalog() -> list[ProductRecord]:
    return [ProductRecord.from_row(row) for row in MOCK_CATALOG]


def search_mock_catalog(query: str, limit: int | None = None) -> list[ProductRecord]:
    """Filter the offline catalog by substring match on name, store and promotion.

    Args:
        query: Raw user query
        limit: Maximum number of records (None for all)

    Returns:
        Matching records in catalog order
    """
    matches = [
        record
        for record in load_mock_catalog()
        if contains_any(query, (record.name, record.store, record.promotion))
    ]
    if limit is not None:
        matches = matches[:limit]
    logger.info(f"Offline catalog matched {len(matches)} products for {query!r}")
    return matches
