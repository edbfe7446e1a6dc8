"""
Promotion services for the Tablesail promotions platform.
Entry points used by the storefront and checkout: validate a code, list
promotions worth advertising, recalculate a cart, and finalize an order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.common.types import Err, Ok, Result
from apps.tenants.models import Tenant

from .calculator import calculate
from .cart import ZERO, CartSnapshot
from .eligibility import CustomerContext, OrderHistory, evaluate
from .errors import ReasonCode
from .models import MAX_CODE_LENGTH, Promotion, PromotionRedemption, normalize_code
from .recorder import RedemptionRecorder
from .repository import PromotionRepository, parse_uuid
from .stacking import DetailedCalculation, RejectedPromotion, resolve

logger = logging.getLogger(__name__)


# ===============================================================================
# Data Classes for Results
# ===============================================================================


@dataclass(frozen=True)
class ServiceError:
    """Expected failure of a promotion operation, with request problems when malformed."""

    reason: ReasonCode
    details: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return self.reason.message

    def as_dict(self) -> dict[str, Any]:
        return {"code": self.reason.value, "message": self.message, "details": list(self.details)}


@dataclass
class ValidationResult:
    """
    Result of validating a promotion code (or the auto-apply set) against a cart.

    Attributes:
        is_valid: Whether the promotion can be applied.
        reason: Machine-readable reason when it cannot.
        promotion_id: The promotion the code resolved to.
        discount_preview: Discount of that promotion applied alone to the cart.
        detailed_calculation: Full resolution including auto-apply promotions.
        details: Request problems for VALIDATION_ERROR.
    """

    is_valid: bool
    reason: ReasonCode | None = None
    promotion_id: str | None = None
    discount_preview: Decimal = ZERO
    detailed_calculation: DetailedCalculation | None = None
    details: list[str] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return self.reason.message if self.reason else ""

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "is_valid": self.is_valid,
            "promotion_id": self.promotion_id,
            "discount_preview": str(self.discount_preview),
            "detailed_calculation": self.detailed_calculation.as_dict() if self.detailed_calculation else None,
        }
        if self.reason is not None:
            data["reason"] = self.reason.value
            data["message"] = self.error_message
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class FinalizeResult:
    """
    Result of recording the promotions of a confirmed order.

    Attributes:
        calculation: Final totals, without any promotion that lost a race.
        redemptions: One redemption per applied promotion.
        lost: Promotions that were eligible at preview but could not be recorded.
    """

    calculation: DetailedCalculation
    redemptions: list[PromotionRedemption] = field(default_factory=list)
    lost: list[RejectedPromotion] = field(default_factory=list)


class _RecordingFailed(Exception):
    def __init__(self, promotion_id: str, reason: ReasonCode) -> None:
        super().__init__(f"{promotion_id}: {reason}")
        self.promotion_id = promotion_id
        self.reason = reason


# ===============================================================================
# Promotion Service
# ===============================================================================


class PromotionService:
    """
    Service for promotion validation, listing, recalculation and checkout.
    Expected outcomes come back as values; only PromotionUpstreamError is raised.
    """

    @staticmethod
    def _request_problems(tenant_id: Any, cart: CartSnapshot | None, codes: Iterable[str | None] = ()) -> list[str]:
        """Structural checks that need no I/O."""
        problems: list[str] = []
        if not tenant_id or parse_uuid(tenant_id) is None:
            problems.append("tenant_id is required and must be a UUID")
        if cart is not None:
            problems.extend(cart.validate())
        max_length = getattr(settings, "PROMOTIONS", {}).get("MAX_CODE_LENGTH", MAX_CODE_LENGTH)
        for code in codes:
            if code is not None and len(code.strip()) > max_length:
                problems.append(f"code must be at most {max_length} characters")
        return problems

    @classmethod
    def _load_tenant(
        cls,
        tenant_id: Any,
        cart: CartSnapshot | None,
        codes: Iterable[str | None] = (),
    ) -> Result[Tenant, ServiceError]:
        problems = cls._request_problems(tenant_id, cart, codes)
        if problems:
            return Err(ServiceError(ReasonCode.VALIDATION_ERROR, tuple(problems)))

        tenant = PromotionRepository.get_tenant(tenant_id)
        if tenant is None:
            return Err(ServiceError(ReasonCode.VALIDATION_ERROR, ("unknown or inactive tenant",)))
        return Ok(tenant)

    @staticmethod
    def _local_now(tenant: Tenant, now: datetime | None) -> datetime:
        """Schedules are written in the restaurant's wall-clock time."""
        return timezone.localtime(now or timezone.now(), tenant.tzinfo)

    @staticmethod
    def _customer_context(
        tenant: Tenant,
        customer_id: str | None,
        promotions: Sequence[Promotion],
        order_history: OrderHistory | None = None,
        order_id: str | None = None,
    ) -> CustomerContext:
        # A retried checkout must not see its own redemptions as prior uses
        counts = PromotionRepository.customer_redemption_counts(
            tenant.pk, customer_id, [promotion.pk for promotion in promotions], exclude_order_id=order_id
        )
        return CustomerContext(
            customer_id=customer_id or None,
            redemption_counts=counts,
            order_history=order_history,
            held_promotion_ids=PromotionRepository.order_promotion_ids(tenant.pk, order_id),
        )

    @classmethod
    def validate(
        cls,
        tenant_id: Any,
        cart: CartSnapshot,
        code: str | None = None,
        customer_id: str | None = None,
        now: datetime | None = None,
        order_history: OrderHistory | None = None,
    ) -> ValidationResult:
        """
        Preview a code (or, without a code, the auto-apply promotions) against a cart.
        Never records usage.
        """
        loaded = cls._load_tenant(tenant_id, cart, [code])
        if loaded.is_err():
            return ValidationResult(
                is_valid=False,
                reason=loaded.error.reason,
                details=list(loaded.error.details),
            )
        tenant = loaded.unwrap()
        now = cls._local_now(tenant, now)

        if not normalize_code(code):
            return cls._validate_auto_apply(tenant, cart, customer_id, now, order_history)

        promotion = PromotionRepository.get_by_code(tenant.pk, code or "")
        if promotion is None:
            logger.info(
                f"🔎 [Promotions] Unknown code for tenant {tenant.slug}",
                extra={"tenant_id": str(tenant.pk), "code": normalize_code(code)},
            )
            return ValidationResult(is_valid=False, reason=ReasonCode.NOT_FOUND)

        candidates = PromotionRepository.get_candidates(tenant.pk, [promotion.code or ""])
        customer = cls._customer_context(tenant, customer_id, [promotion, *candidates], order_history)

        outcome = evaluate(promotion, cart, customer, now, submitted_code=code)
        if outcome.is_err():
            logger.info(
                f"🚫 [Promotions] Code {promotion.code} rejected: {outcome.error}",
                extra={"tenant_id": str(tenant.pk), "promotion_id": str(promotion.pk), "reason": str(outcome.error)},
            )
            return ValidationResult(is_valid=False, reason=outcome.error, promotion_id=str(promotion.pk))

        detailed = resolve(
            cart,
            candidates,
            customer,
            now,
            requested_codes=[promotion.code or ""],
            tax_after_discount=tenant.tax_after_discount,
        )
        return ValidationResult(
            is_valid=True,
            promotion_id=str(promotion.pk),
            discount_preview=calculate(promotion, cart),
            detailed_calculation=detailed,
        )

    @classmethod
    def _validate_auto_apply(
        cls,
        tenant: Tenant,
        cart: CartSnapshot,
        customer_id: str | None,
        now: datetime,
        order_history: OrderHistory | None = None,
    ) -> ValidationResult:
        candidates = PromotionRepository.get_candidates(tenant.pk)
        customer = cls._customer_context(tenant, customer_id, candidates, order_history)
        detailed = resolve(cart, candidates, customer, now, tax_after_discount=tenant.tax_after_discount)

        if not detailed.applied:
            reason = detailed.rejected[0].reason if detailed.rejected else ReasonCode.NOT_FOUND
            return ValidationResult(is_valid=False, reason=reason, detailed_calculation=detailed)

        return ValidationResult(
            is_valid=True,
            promotion_id=detailed.applied[0].promotion_id,
            discount_preview=detailed.total_discount,
            detailed_calculation=detailed,
        )

    @classmethod
    def list_available(cls, tenant_id: Any, now: datetime | None = None) -> Result[list[Promotion], ServiceError]:
        """
        Promotions worth advertising right now: auto-apply ones and public codes.
        Hidden code-only promotions stay redeemable by direct entry but are not listed,
        and neither are promotions outside their weekday or hour window.
        """
        loaded = cls._load_tenant(tenant_id, None)
        if loaded.is_err():
            return Err(loaded.error)
        tenant = loaded.unwrap()
        return Ok(PromotionRepository.get_displayable(tenant.pk, cls._local_now(tenant, now)))

    @classmethod
    def recalculate(  # noqa: PLR0913
        cls,
        tenant_id: Any,
        cart: CartSnapshot,
        applied_codes: Iterable[str],
        customer_id: str | None = None,
        now: datetime | None = None,
        order_history: OrderHistory | None = None,
    ) -> Result[DetailedCalculation, ServiceError]:
        """Re-derive totals for a set of codes; the same inputs always give the same result."""
        codes = sorted({normalize_code(code) for code in applied_codes if normalize_code(code)})
        loaded = cls._load_tenant(tenant_id, cart, codes)
        if loaded.is_err():
            return Err(loaded.error)
        tenant = loaded.unwrap()

        customer = CustomerContext(customer_id=customer_id or None, order_history=order_history)
        return Ok(cls._resolve_for_codes(tenant, cart, codes, customer, cls._local_now(tenant, now)))

    @classmethod
    def _resolve_for_codes(  # noqa: PLR0913
        cls,
        tenant: Tenant,
        cart: CartSnapshot,
        codes: list[str],
        customer: CustomerContext,
        now: datetime,
        excluded_ids: frozenset[str] = frozenset(),
        order_id: str | None = None,
    ) -> DetailedCalculation:
        fetched = PromotionRepository.get_candidates(tenant.pk, codes)
        candidates = [promotion for promotion in fetched if str(promotion.pk) not in excluded_ids]
        context = cls._customer_context(
            tenant, customer.customer_id, candidates, customer.order_history, order_id=order_id
        )
        detailed = resolve(
            cart,
            candidates,
            context,
            now,
            requested_codes=codes,
            tax_after_discount=tenant.tax_after_discount,
        )

        # Codes excluded after losing a race are reported by the caller, not as unknown
        known_codes = {promotion.code for promotion in fetched if promotion.code}
        unknown = [RejectedPromotion(None, ReasonCode.NOT_FOUND, code) for code in codes if code not in known_codes]
        if not unknown:
            return detailed
        return replace(detailed, rejected=detailed.rejected + tuple(unknown))

    @classmethod
    def finalize(  # noqa: PLR0913
        cls,
        tenant_id: Any,
        cart: CartSnapshot,
        order_id: str,
        applied_codes: Iterable[str],
        customer_id: str | None = None,
        now: datetime | None = None,
        order_history: OrderHistory | None = None,
    ) -> Result[FinalizeResult, ServiceError]:
        """
        Re-validate and record every promotion applied to a confirmed order.

        When a promotion loses a race for its last redemption, nothing from this
        attempt is kept; totals are recomputed without it and recording is retried.
        Calling again for an order that is already recorded returns the same outcome.
        """
        codes = sorted({normalize_code(code) for code in applied_codes if normalize_code(code)})
        if not order_id or not order_id.strip():
            return Err(ServiceError(ReasonCode.VALIDATION_ERROR, ("order_id is required",)))
        loaded = cls._load_tenant(tenant_id, cart, codes)
        if loaded.is_err():
            return Err(loaded.error)
        tenant = loaded.unwrap()
        now = cls._local_now(tenant, now)
        customer = CustomerContext(customer_id=customer_id or None, order_history=order_history)

        excluded: set[str] = set()
        lost: list[RejectedPromotion] = []
        while True:
            calculation = cls._resolve_for_codes(
                tenant, cart, codes, customer, now, frozenset(excluded), order_id=order_id
            )
            try:
                with transaction.atomic():
                    redemptions = cls._record_all(tenant, calculation, customer_id, order_id)
            except _RecordingFailed as failed:
                # Each pass excludes one more promotion, so this terminates
                excluded.add(failed.promotion_id)
                lost.append(RejectedPromotion(failed.promotion_id, failed.reason))
                logger.warning(
                    f"⚠️ [Promotions] Recomputing order {order_id} without promotion {failed.promotion_id}",
                    extra={"tenant_id": str(tenant.pk), "order_id": order_id, "reason": str(failed.reason)},
                )
                continue
            break

        if lost:
            calculation = replace(calculation, rejected=calculation.rejected + tuple(lost))
        return Ok(FinalizeResult(calculation=calculation, redemptions=redemptions, lost=lost))

    @staticmethod
    def _record_all(
        tenant: Tenant,
        calculation: DetailedCalculation,
        customer_id: str | None,
        order_id: str,
    ) -> list[PromotionRedemption]:
        redemptions: list[PromotionRedemption] = []
        for applied in calculation.applied:
            outcome = RedemptionRecorder.record(
                applied.promotion_id,
                customer_id,
                order_id,
                applied.discount_amount,
                tenant_id=tenant.pk,
            )
            if outcome.is_err():
                raise _RecordingFailed(applied.promotion_id, outcome.error)
            redemptions.append(outcome.unwrap())
        return redemptions

    @classmethod
    def void_redemption(
        cls,
        tenant_id: Any,
        promotion_id: Any,
        order_id: str,
    ) -> Result[PromotionRedemption, ServiceError]:
        """Release a redemption when its order is cancelled or refunded."""
        loaded = cls._load_tenant(tenant_id, None)
        if loaded.is_err():
            return Err(loaded.error)

        outcome = RedemptionRecorder.void(promotion_id, order_id, tenant_id=loaded.unwrap().pk)
        if outcome.is_err():
            return Err(ServiceError(outcome.error))
        return Ok(outcome.unwrap())
