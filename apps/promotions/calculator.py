"""
Discount calculation for a single eligible promotion against a cart snapshot.
Pure functions: no database access, no side effects.
"""

from __future__ import annotations

from decimal import Decimal

from .cart import ZERO, CartSnapshot, LineItem, to_money
from .discounts import BuyXGetYDiscount, FixedAmountDiscount, FreeDeliveryDiscount, PercentageDiscount
from .models import Promotion


def calculate(promotion: Promotion, cart: CartSnapshot) -> Decimal:
    """
    Monetary discount for `promotion` on `cart`.

    Never negative and never more than the amount it discounts: the subtotal,
    or the delivery fee for free delivery.
    """
    shape = promotion.discount_shape

    if isinstance(shape, FreeDeliveryDiscount):
        ceiling = cart.delivery_fee
        amount = cart.delivery_fee
    else:
        ceiling = cart.subtotal
        if isinstance(shape, PercentageDiscount):
            amount = to_money(cart.subtotal * shape.percent / Decimal("100"))
        elif isinstance(shape, FixedAmountDiscount):
            amount = min(shape.amount, cart.subtotal)
        elif isinstance(shape, BuyXGetYDiscount):
            amount = buy_x_get_y_amount(shape, cart.items)
        else:
            raise TypeError(f"Unsupported discount shape: {shape!r}")

    if promotion.max_discount_amount is not None:
        amount = min(amount, promotion.max_discount_amount)

    return to_money(max(ZERO, min(amount, ceiling)))


def buy_x_get_y_amount(shape: BuyXGetYDiscount, items: tuple[LineItem, ...]) -> Decimal:
    """
    Price of the cheapest free units.

    Every complete group of `buy_quantity` eligible units earns `get_quantity`
    free units, always taken from the lowest-priced eligible units.
    """
    if shape.buy_quantity <= 0 or shape.get_quantity <= 0:
        return ZERO

    unit_prices = sorted(
        item.unit_price
        for item in items
        if shape.is_applicable(str(item.item_id))
        for _ in range(item.quantity)
    )
    groups = len(unit_prices) // shape.buy_quantity
    if groups == 0:
        return ZERO

    free_units = min(groups * shape.get_quantity, len(unit_prices))
    return to_money(sum(unit_prices[:free_units], ZERO))
