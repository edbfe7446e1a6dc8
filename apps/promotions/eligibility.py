"""
Eligibility evaluation: does a promotion apply to this cart, for this customer, right now?
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from apps.common.types import Err, Ok, Result

from .cart import ZERO, CartSnapshot
from .errors import ReasonCode
from .models import Promotion, normalize_code

VIP_MIN_TOTAL_SPENT = Decimal("1000.00")
INACTIVE_AFTER_DAYS = 30


@dataclass(frozen=True)
class OrderHistory:
    """Completed-order statistics the checkout flow supplies for audience targeting."""

    total_orders: int = 0
    total_spent: Decimal = ZERO
    days_since_last_order: int | None = None


@dataclass(frozen=True)
class CustomerContext:
    """
    Who is checking out, plus their prior applied redemptions keyed by promotion id.
    Counts are loaded once per request by the repository.

    held_promotion_ids are promotions the order being finalized already redeemed;
    their own redemption must not count against the caps on a retried checkout.
    """

    customer_id: str | None = None
    redemption_counts: Mapping[str, int] = field(default_factory=dict)
    order_history: OrderHistory | None = None
    held_promotion_ids: frozenset[str] = frozenset()

    def redemptions_of(self, promotion: Promotion) -> int:
        return self.redemption_counts.get(str(promotion.id), 0)

    def holds(self, promotion: Promotion) -> bool:
        return str(promotion.id) in self.held_promotion_ids


ANONYMOUS = CustomerContext()


def in_segment(segment: str, history: OrderHistory | None) -> bool:
    """Customers without any history only qualify for new-customer promotions."""
    if segment == Promotion.SEGMENT_NEW:
        return history is None or history.total_orders == 0
    if segment == Promotion.SEGMENT_RETURNING:
        return history is not None and history.total_orders > 0
    if segment == Promotion.SEGMENT_VIP:
        return history is not None and history.total_spent > VIP_MIN_TOTAL_SPENT
    if segment == Promotion.SEGMENT_INACTIVE:
        return history is not None and (history.days_since_last_order or 0) > INACTIVE_AFTER_DAYS
    return True


def evaluate(
    promotion: Promotion,
    cart: CartSnapshot,
    customer: CustomerContext,
    now: datetime,
    submitted_code: str | None = None,
) -> Result[Promotion, ReasonCode]:
    """
    Run the eligibility checks in a fixed order and stop at the first failure.

    The order matters to callers: an expired promotion reports EXPIRED even if
    the cart is also below the minimum. `now` should be in the restaurant's
    time zone so that day and hour schedules read as the restaurant means them.
    """
    if not promotion.is_active:
        return Err(ReasonCode.INACTIVE)

    if now < promotion.valid_from:
        return Err(ReasonCode.NOT_YET_VALID)
    if promotion.valid_until is not None and now > promotion.valid_until:
        return Err(ReasonCode.EXPIRED)
    if not promotion.is_within_schedule(now):
        return Err(ReasonCode.OUTSIDE_SCHEDULE)

    if cart.subtotal < (promotion.min_order_amount or Decimal("0")):
        return Err(ReasonCode.BELOW_MINIMUM)
    if promotion.min_items_quantity and cart.item_count < promotion.min_items_quantity:
        return Err(ReasonCode.BELOW_MINIMUM_ITEMS)

    if promotion.is_depleted and not customer.holds(promotion):
        return Err(ReasonCode.GLOBAL_LIMIT_REACHED)

    # Guests cannot be attributed prior uses, so the per-customer cap only binds known customers
    if (
        promotion.max_redemptions_per_customer is not None
        and customer.customer_id
        and customer.redemptions_of(promotion) >= promotion.max_redemptions_per_customer
    ):
        return Err(ReasonCode.CUSTOMER_LIMIT_REACHED)

    if not in_segment(promotion.target_segment, customer.order_history):
        return Err(ReasonCode.SEGMENT_MISMATCH)

    if promotion.requires_code and normalize_code(submitted_code) != normalize_code(promotion.code):
        return Err(ReasonCode.CODE_MISMATCH)

    return Ok(promotion)
