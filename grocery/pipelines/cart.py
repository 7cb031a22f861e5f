"""Stateless cart summaries.

Cart contents live in the client session; the backend only merges lines
and prices them.
"""
from __future__ import annotations

from dataclasses import dataclass

from grocery.config import settings
from grocery.pipelines.normalization import parse_price
from grocery.pipelines.records import ProductRecord


@dataclass
class CartLine:
    """Product reference plus quantity."""
    product: ProductRecord
    quantity: int = 1

    @property
    def unit_price(self) -> float:
        return parse_price(self.product.price)

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


@dataclass
class CartSummary:
    lines: list[CartLine]
    subtotal: float
    tax: float
    total: float

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


def add_to_cart(lines: list[CartLine], product: ProductRecord, quantity: int = 1) -> list[CartLine]:
    """Add a product, bumping the quantity if it is already in the cart."""
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")
    for line in lines:
        if line.product.id == product.id:
            line.quantity += quantity
            return lines
    lines.append(CartLine(product=product, quantity=quantity))
    return lines


def summarize_cart(lines: list[CartLine], tax_rate: float | None = None) -> CartSummary:
    """Merge duplicate products and compute subtotal, tax and total."""
    tax_rate = settings.cart.tax_rate if tax_rate is None else tax_rate

    merged: list[CartLine] = []
    for line in lines:
        add_to_cart(merged, line.product, line.quantity)

    subtotal = round(sum(line.unit_price * line.quantity for line in merged), 2)
    tax = round(subtotal * tax_rate, 2)
    return CartSummary(
        lines=merged,
        subtotal=subtotal,
        tax=tax,
        total=round(subtotal + tax, 2),
    )
