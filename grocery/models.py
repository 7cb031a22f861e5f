"""SQLAlchemy models (2.x style) mapping the hosted product catalog.

The `products` table and its pgvector `embedding` column are owned by the
hosted database; this mapping only reads from them.
"""

from __future__ import annotations

from datetime import datetime

from pgvector.sqlalchemy import Vector
from sqlalchemy import String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

EMBEDDING_DIM = 768


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Product(Base):
    """Scraped supermarket products."""
    __tablename__ = "products"

    product_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    # Free-form text ("$3.49", "2 for $5"), never coerced at storage time
    price: Mapped[str | None] = mapped_column(Text)
    supermarket: Mapped[str | None] = mapped_column(String(255))
    quantity: Mapped[str | None] = mapped_column(String(255))
    promotion_description: Mapped[str | None] = mapped_column(Text)
    promotion_end_date: Mapped[str | None] = mapped_column(Text)
    product_url: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(Text)
    embedding: Mapped[list[float] | None] = mapped_column(Vector(EMBEDDING_DIM), deferred=True)
    created_at: Mapped[datetime | None] = mapped_column()
    updated_at: Mapped[datetime | None] = mapped_column()


# Columns that free-text search matches against
TEXT_SEARCH_COLUMNS = (
    Product.name,
    Product.supermarket,
    Product.quantity,
    Product.promotion_description,
)

# Columns returned to the API (the embedding stays in the database)
PRODUCT_COLUMNS = (
    Product.product_id,
    Product.name,
    Product.price,
    Product.supermarket,
    Product.quantity,
    Product.promotion_description,
    Product.product_url,
    Product.image_url,
)
