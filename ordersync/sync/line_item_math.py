from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def parse_decimal(value: Any) -> Decimal:
    """Parse a store-formatted number, falling back to zero when it is not a finite decimal."""
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if value is None:
        return ZERO
    text = str(value).strip()
    if not text:
        return ZERO
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return ZERO
    return parsed if parsed.is_finite() else ZERO


def format_decimal(value: Decimal) -> str:
    """Plain decimal notation without trailing zeros: 25.00 -> "25", 370.350 -> "370.35"."""
    if value == 0:
        return "0"
    return format(value.normalize(), "f")


def base_price(item: Any) -> Decimal:
    """Pre-tax unit price of an order item.

    The store reports `price` tax-inclusive for some tax setups while `subtotal`
    never includes tax, so the subtotal per unit is preferred when it can be derived.
    """
    quantity = parse_decimal(item.quantity)
    if quantity != 0 and str(item.subtotal).strip():
        return parse_decimal(item.subtotal) / quantity
    return parse_decimal(item.price)


@dataclass(frozen=True)
class OrderItemParameters:
    quantity: Decimal
    price: Decimal
    discount: Decimal
    product_id: int
    variation_id: int | None
    base_subtotal: Decimal | None = None

    @property
    def subtotal_decimal(self) -> Decimal:
        # Base subtotal has priority: it can differ from the price when the price includes tax.
        unit = self.base_subtotal if self.base_subtotal is not None else self.price
        return unit * self.quantity

    @property
    def subtotal(self) -> str:
        return format_decimal(self.subtotal_decimal)

    @property
    def total(self) -> str:
        return format_decimal(self.subtotal_decimal - self.discount)
