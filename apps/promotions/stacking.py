"""
Stacking resolution: which eligible promotions apply together, and in what order.

Policy:
1. Auto-apply promotions are always considered; code-based ones only when
   their code was requested.
2. Ineligible candidates are dropped and kept as diagnostics.
3. Of the eligible non-stackable promotions only one survives: the one with
   the largest standalone discount, ties broken by lowest id.
4. Application order is free delivery first, then the primary subtotal
   promotion, then the remaining stackable promotions by ascending id. Each
   discount is computed on the already-discounted amounts.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from .calculator import calculate
from .cart import ZERO, CartSnapshot, to_money
from .eligibility import CustomerContext, evaluate
from .errors import ReasonCode
from .models import Promotion, normalize_code

# ===============================================================================
# Result Types
# ===============================================================================


@dataclass(frozen=True)
class AppliedPromotion:
    promotion_id: str
    promotion_name: str
    discount_amount: Decimal
    promotion_type: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "promotion_id": self.promotion_id,
            "promotion_name": self.promotion_name,
            "discount_amount": str(self.discount_amount),
            "promotion_type": self.promotion_type,
        }


@dataclass(frozen=True)
class RejectedPromotion:
    promotion_id: str | None
    reason: ReasonCode
    code: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "promotion_id": self.promotion_id,
            "code": self.code,
            "reason": self.reason.value,
            "message": self.reason.message,
        }


@dataclass(frozen=True)
class DetailedCalculation:
    """
    Outcome of resolving a cart against its candidate promotions.

    Attributes:
        applied: Promotions in application order; zero-amount ones are omitted.
        subtotal_discount: Sum of discounts taken off the subtotal.
        delivery_discount: Sum of discounts taken off the delivery fee.
        adjusted_tax: Original tax, or tax scaled to the discounted subtotal
            when the restaurant taxes after discounts.
        rejected: Candidates that were considered but not eligible.
    """

    subtotal: Decimal
    delivery_fee: Decimal
    tax_amount: Decimal
    applied: tuple[AppliedPromotion, ...] = ()
    subtotal_discount: Decimal = ZERO
    delivery_discount: Decimal = ZERO
    adjusted_subtotal: Decimal = ZERO
    adjusted_delivery_fee: Decimal = ZERO
    adjusted_tax: Decimal = ZERO
    rejected: tuple[RejectedPromotion, ...] = field(default=())

    @property
    def total_discount(self) -> Decimal:
        return self.subtotal_discount + self.delivery_discount

    @property
    def adjusted_total(self) -> Decimal:
        return self.adjusted_subtotal + self.adjusted_delivery_fee + self.adjusted_tax

    @property
    def applied_promotion_ids(self) -> list[str]:
        return [applied.promotion_id for applied in self.applied]

    def as_dict(self) -> dict[str, Any]:
        return {
            "applied_promotions": [applied.as_dict() for applied in self.applied],
            "total_discount": str(self.total_discount),
            "subtotal": str(self.subtotal),
            "subtotal_discount": str(self.subtotal_discount),
            "adjusted_subtotal": str(self.adjusted_subtotal),
            "delivery_fee": str(self.delivery_fee),
            "delivery_discount": str(self.delivery_discount),
            "adjusted_delivery_fee": str(self.adjusted_delivery_fee),
            "tax_amount": str(self.tax_amount),
            "adjusted_tax": str(self.adjusted_tax),
            "adjusted_total": str(self.adjusted_total),
            "rejected_promotions": [rejected.as_dict() for rejected in self.rejected],
        }


# ===============================================================================
# Resolver
# ===============================================================================


def _sort_key(promotion: Promotion) -> str:
    return str(promotion.id)


def _largest_standalone(promotions: list[Promotion], cart: CartSnapshot) -> Promotion:
    """Largest discount when applied alone to the original cart; lowest id wins ties."""
    return min(promotions, key=lambda promotion: (-calculate(promotion, cart), _sort_key(promotion)))


def _select_considered(candidates: Iterable[Promotion], requested_codes: set[str]) -> list[Promotion]:
    considered: dict[str, Promotion] = {}
    for promotion in candidates:
        if promotion.auto_apply or (promotion.code and normalize_code(promotion.code) in requested_codes):
            considered.setdefault(str(promotion.id), promotion)
    return list(considered.values())


def resolve(  # noqa: PLR0913
    cart: CartSnapshot,
    candidates: Iterable[Promotion],
    customer: CustomerContext,
    now: datetime,
    requested_codes: Iterable[str] = (),
    tax_after_discount: bool = False,
) -> DetailedCalculation:
    """Resolve which candidates apply to `cart` and compute the combined outcome."""
    codes = {normalize_code(code) for code in requested_codes if normalize_code(code)}

    eligible: list[Promotion] = []
    rejected: list[RejectedPromotion] = []
    for promotion in _select_considered(candidates, codes):
        # A code-based candidate is only considered because its code was requested
        outcome = evaluate(promotion, cart, customer, now, submitted_code=promotion.code)
        if outcome.is_ok():
            eligible.append(promotion)
        else:
            rejected.append(RejectedPromotion(str(promotion.id), outcome.error, promotion.code))

    non_stackable = [promotion for promotion in eligible if not promotion.stackable]
    stackable = [promotion for promotion in eligible if promotion.stackable]
    exclusive_winner = _largest_standalone(non_stackable, cart) if non_stackable else None
    retained = stackable + ([exclusive_winner] if exclusive_winner else [])

    ordered = _application_order(retained, exclusive_winner, cart)

    running = cart
    applied: list[AppliedPromotion] = []
    subtotal_discount = ZERO
    delivery_discount = ZERO
    for promotion in ordered:
        amount = calculate(promotion, running)
        if promotion.affects_delivery:
            delivery_discount += amount
            running = running.with_amounts(delivery_fee=running.delivery_fee - amount)
        else:
            subtotal_discount += amount
            running = running.with_amounts(subtotal=running.subtotal - amount)
        if amount > 0:
            applied.append(AppliedPromotion(str(promotion.id), promotion.name, amount, promotion.kind))

    adjusted_subtotal = max(ZERO, cart.subtotal - subtotal_discount)
    adjusted_delivery_fee = max(ZERO, cart.delivery_fee - delivery_discount)

    return DetailedCalculation(
        subtotal=cart.subtotal,
        delivery_fee=cart.delivery_fee,
        tax_amount=cart.tax_amount,
        applied=tuple(applied),
        subtotal_discount=subtotal_discount,
        delivery_discount=delivery_discount,
        adjusted_subtotal=adjusted_subtotal,
        adjusted_delivery_fee=adjusted_delivery_fee,
        adjusted_tax=adjusted_tax(cart, adjusted_subtotal, tax_after_discount),
        rejected=tuple(sorted(rejected, key=lambda item: item.promotion_id or "")),
    )


def _application_order(
    retained: list[Promotion],
    exclusive_winner: Promotion | None,
    cart: CartSnapshot,
) -> list[Promotion]:
    delivery = sorted((p for p in retained if p.affects_delivery), key=_sort_key)
    subtotal_promotions = [p for p in retained if not p.affects_delivery]
    if not subtotal_promotions:
        return delivery

    if exclusive_winner is not None and not exclusive_winner.affects_delivery:
        primary = exclusive_winner
    else:
        primary = _largest_standalone(subtotal_promotions, cart)

    remaining = sorted((p for p in subtotal_promotions if p.pk != primary.pk), key=_sort_key)
    return [*delivery, primary, *remaining]


def adjusted_tax(cart: CartSnapshot, adjusted_subtotal: Decimal, tax_after_discount: bool) -> Decimal:
    """Tax stays on the original subtotal unless the restaurant taxes after discounts."""
    if not tax_after_discount or cart.subtotal <= 0:
        return cart.tax_amount
    return to_money(cart.tax_amount * adjusted_subtotal / cart.subtotal)
