"""
Read-only cart snapshot handed to the promotion engine by the checkout flow.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value: Decimal | int | str) -> Decimal:
    """Quantize to currency precision, rounding half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    item_id: str
    quantity: int
    unit_price: Decimal
    name: str = ""


@dataclass(frozen=True)
class CartSnapshot:
    """
    Line items plus the amounts the cart provider computed for them.

    The engine never mutates a snapshot; running totals during stacking are
    derived with with_amounts().
    """

    items: tuple[LineItem, ...]
    subtotal: Decimal
    delivery_fee: Decimal = ZERO
    tax_amount: Decimal = ZERO

    def __post_init__(self) -> None:
        # Accept any iterable of items but keep the snapshot hashable and immutable
        object.__setattr__(self, "items", tuple(self.items))

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def validate(self) -> list[str]:
        """Return a list of problems; empty means the snapshot is well formed."""
        problems: list[str] = []
        if self.subtotal < 0:
            problems.append("subtotal must be non-negative")
        if self.delivery_fee < 0:
            problems.append("delivery_fee must be non-negative")
        if self.tax_amount < 0:
            problems.append("tax_amount must be non-negative")
        for item in self.items:
            if item.quantity <= 0:
                problems.append(f"item {item.item_id}: quantity must be positive")
            if item.unit_price < 0:
                problems.append(f"item {item.item_id}: unit_price must be non-negative")
        return problems

    def with_amounts(self, *, subtotal: Decimal | None = None, delivery_fee: Decimal | None = None) -> CartSnapshot:
        changes: dict[str, Decimal] = {}
        if subtotal is not None:
            changes["subtotal"] = subtotal
        if delivery_fee is not None:
            changes["delivery_fee"] = delivery_fee
        return replace(self, **changes)
