"""
Closed set of discount shapes, one per promotion kind.

Each variant carries only the fields its calculation reads, so a percentage
promotion cannot accidentally be priced from a stale fixed amount column.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class PercentageDiscount:
    kind: ClassVar[str] = "percentage"

    percent: Decimal


@dataclass(frozen=True)
class FixedAmountDiscount:
    kind: ClassVar[str] = "fixed_amount"

    amount: Decimal


@dataclass(frozen=True)
class FreeDeliveryDiscount:
    kind: ClassVar[str] = "free_delivery"


@dataclass(frozen=True)
class BuyXGetYDiscount:
    kind: ClassVar[str] = "buy_x_get_y"

    buy_quantity: int
    get_quantity: int
    # Empty means every line item counts toward the groups
    applicable_item_ids: frozenset[str] = field(default_factory=frozenset)

    def is_applicable(self, item_id: str) -> bool:
        return not self.applicable_item_ids or item_id in self.applicable_item_ids


DiscountShape = PercentageDiscount | FixedAmountDiscount | FreeDeliveryDiscount | BuyXGetYDiscount
