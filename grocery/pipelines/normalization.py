"""Query and price normalization utilities.

Handles whitespace, search term splitting, and best-effort price parsing of
the free-text price column.
"""
from __future__ import annotations

import logging
import re
from typing import Iterable

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_PRICE_TOKEN = re.compile(r"[\d.,]+")
_LEADING_FLOAT = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")


def normalize_whitespace(text: str) -> str:
    """Normalize whitespace: collapse multiple spaces, remove leading/trailing."""
    return _WHITESPACE.sub(" ", text).strip()


def clean_query(query: str | None) -> str:
    """Trim a raw query string; newlines become spaces."""
    if not query:
        return ""
    return normalize_whitespace(query.replace("\n", " "))


def split_terms(query: str) -> list[str]:
    """Split a query into lowercase whitespace-delimited terms.

    Duplicate terms are dropped, order is preserved.
    """
    terms: list[str] = []
    for term in clean_query(query).lower().split(" "):
        if term and term not in terms:
            terms.append(term)
    return terms


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so a term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_price(price_text: str | None) -> float:
    """Extract a numeric price from free-form price text.

    Takes the first run of digits, dots and commas, drops the first comma
    (thousands separator) and parses the leading float of what is left.

    Returns:
        Parsed price, or 0.0 when nothing numeric can be read
    """
    if not price_text:
        return 0.0

    match = _PRICE_TOKEN.search(price_text)
    if not match:
        return 0.0

    token = match.group(0).replace(",", "", 1)
    number = _LEADING_FLOAT.match(token)
    if not number:
        logger.debug(f"Unparseable price text: {price_text!r}")
        return 0.0
    return float(number.group(0))


def contains_any(query: str, fields: Iterable[str | None]) -> bool:
    """Case-insensitive substring test of the whole query against fields."""
    needle = clean_query(query).lower()
    if not needle:
        return False
    return any(needle in value.lower() for value in fields if value)
