"""Result fusion: dedupe-by-identifier union of ranked product lists."""
from __future__ import annotations

from typing import Iterable

from grocery.pipelines.records import ProductRecord


def fuse_results(
    *sources: Iterable[ProductRecord],
    limit: int | None = None,
    seen: set[str] | None = None,
) -> list[ProductRecord]:
    """Union ranked sources in priority order, skipping already-seen ids.

    Earlier sources win: exact text matches are passed first, similarity
    matches fill the remaining slots.

    Args:
        sources: Ranked record lists, highest priority first
        limit: Stop once this many records are collected
        seen: Identifiers to skip; updated in place

    Returns:
        Fused list with pairwise distinct identifiers
    """
    seen = seen if seen is not None else set()
    fused: list[ProductRecord] = []

    for source in sources:
        for record in source:
            if limit is not None and len(fused) >= limit:
                return fused
            if record.id in seen:
                continue
            seen.add(record.id)
            fused.append(record)

    return fused


def filter_by_store(records: list[ProductRecord], store: str | None) -> list[ProductRecord]:
    """Keep records whose store name contains `store` (case-insensitive)."""
    if not store or not store.strip():
        return records
    needle = store.strip().lower()
    return [r for r in records if needle in (r.store or "").lower()]
