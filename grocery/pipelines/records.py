"""Product records and search outcomes shared by the retrieval pipelines."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

PRICE_NOT_AVAILABLE = "Price not available"


class SearchMethod(str, Enum):
    """Provenance tag of a result set."""
    SEMANTIC = "semantic"
    TEXT = "text"
    COMBINED = "combined"
    EMPTY = "empty"
    ERROR = "error"


@dataclass
class ProductRecord:
    """A single product as returned by the database or the offline catalog."""
    id: str
    name: str
    price: str
    store: str = ""
    quantity: str = ""
    promotion: str | None = None
    image_url: str | None = None
    product_url: str | None = None
    similarity: float | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ProductRecord":
        """Build a record from a `products` row or a vector-match row."""
        similarity = row.get("similarity")
        return cls(
            id=str(row["product_id"]),
            name=row.get("name") or "",
            price=row.get("price") or PRICE_NOT_AVAILABLE,
            store=row.get("supermarket") or "",
            quantity=row.get("quantity") or "",
            promotion=row.get("promotion_description"),
            image_url=row.get("image_url"),
            product_url=row.get("product_url"),
            similarity=float(similarity) if similarity is not None else None,
        )


@dataclass
class SearchOutcome:
    """Ranked, deduplicated result set with its provenance."""
    query: str
    results: list[ProductRecord] = field(default_factory=list)
    method: SearchMethod = SearchMethod.EMPTY
    fallback: bool = False
    message: str | None = None

    @property
    def count(self) -> int:
        return len(self.results)
