"""
Tenant-scoped data access for promotions.

Every read and counter update the engine needs goes through here, so that
datastore failures surface uniformly as PromotionUpstreamError after at most
one retry instead of looking like "no promotions found".
"""

from __future__ import annotations

import functools
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any, TypeVar

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Count, F, Q

from apps.tenants.models import Tenant

from .errors import PromotionUpstreamError
from .models import Promotion, PromotionRedemption, normalize_code

logger = logging.getLogger(__name__)

F_ = TypeVar("F_", bound=Callable[..., Any])


def _retry_attempts() -> int:
    return int(getattr(settings, "PROMOTIONS", {}).get("DATASTORE_RETRY_ATTEMPTS", 1))


def with_datastore_retry(func: F_) -> F_:
    """
    Retry a datastore call on DatabaseError, then raise PromotionUpstreamError.

    Wrapped calls must be safe to repeat: reads, or writes that run in their
    own transaction so a failed attempt leaves nothing behind.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        attempts = 1 + max(0, _retry_attempts())
        last_exception: DatabaseError | None = None

        for attempt in range(attempts):
            try:
                return func(*args, **kwargs)
            except DatabaseError as e:
                last_exception = e
                if attempt < attempts - 1:
                    logger.warning(f"🔄 [Promotions] Retry {attempt + 1} for {func.__name__}: {e}")
                else:
                    logger.error(
                        f"🔥 [Promotions] Datastore unavailable in {func.__name__}: {e}",
                        extra={"operation": func.__name__},
                    )

        raise PromotionUpstreamError(f"{func.__name__} failed after {attempts} attempt(s)") from last_exception

    return wrapper  # type: ignore[return-value]


def parse_uuid(value: Any) -> uuid.UUID | None:
    try:
        return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


class PromotionRepository:
    """Queries and atomic counter updates, always scoped to one tenant."""

    @staticmethod
    @with_datastore_retry
    def get_tenant(tenant_id: Any) -> Tenant | None:
        parsed = parse_uuid(tenant_id)
        if parsed is None:
            return None
        return Tenant.objects.filter(pk=parsed, is_active=True).first()

    @staticmethod
    @with_datastore_retry
    def get_by_code(tenant_id: Any, code: str) -> Promotion | None:
        normalized = normalize_code(code)
        if not normalized:
            return None
        return Promotion.objects.filter(tenant_id=tenant_id, code=normalized).first()

    @staticmethod
    @with_datastore_retry
    def get_candidates(tenant_id: Any, codes: Iterable[str] = ()) -> list[Promotion]:
        """
        Active auto-apply promotions plus any promotion whose code was requested.
        Requested codes are returned even when inactive so the caller can report why.
        """
        normalized = [normalize_code(code) for code in codes if normalize_code(code)]
        query = Q(auto_apply=True, is_active=True)
        if normalized:
            query |= Q(code__in=normalized)
        return list(Promotion.objects.filter(query, tenant_id=tenant_id))

    @staticmethod
    @with_datastore_retry
    def get_displayable(tenant_id: Any, now: datetime) -> list[Promotion]:
        """
        Promotions usable right now that may be advertised on the storefront.
        `now` must be in the restaurant's time zone; weekday and hour windows are
        checked in Python since JSON containment lookups are not portable.
        """
        promotions = (
            Promotion.objects.filter(tenant_id=tenant_id, is_active=True, valid_from__lte=now)
            .filter(Q(valid_until__isnull=True) | Q(valid_until__gte=now))
            .filter(Q(auto_apply=True) | Q(is_public=True))
            .filter(
                Q(max_total_redemptions__isnull=True)
                | Q(current_total_redemptions__lt=F("max_total_redemptions"))
            )
            .order_by("name", "id")
        )
        return [promotion for promotion in promotions if promotion.is_within_schedule(now)]

    @staticmethod
    @with_datastore_retry
    def customer_redemption_counts(
        tenant_id: Any,
        customer_id: str | None,
        promotion_ids: Iterable[Any],
        exclude_order_id: str | None = None,
    ) -> dict[str, int]:
        """Applied (non-voided) redemptions per promotion for one customer, optionally ignoring one order."""
        ids = list(promotion_ids)
        if not customer_id or not ids:
            return {}
        rows = PromotionRedemption.objects.filter(
            tenant_id=tenant_id,
            customer_id=customer_id,
            promotion_id__in=ids,
            status=PromotionRedemption.STATUS_APPLIED,
        )
        if exclude_order_id:
            rows = rows.exclude(order_id=exclude_order_id)
        counts = rows.values("promotion_id").annotate(total=Count("id"))
        return {str(row["promotion_id"]): row["total"] for row in counts}

    @staticmethod
    @with_datastore_retry
    def order_promotion_ids(tenant_id: Any, order_id: str | None) -> frozenset[str]:
        """Promotions with an applied redemption already recorded on this order."""
        if not order_id:
            return frozenset()
        ids = PromotionRedemption.objects.filter(
            tenant_id=tenant_id,
            order_id=order_id,
            status=PromotionRedemption.STATUS_APPLIED,
        ).values_list("promotion_id", flat=True)
        return frozenset(str(promotion_id) for promotion_id in ids)

    # ===============================================================================
    # Atomic counter primitives (called inside the recorder's transaction)
    # ===============================================================================

    @staticmethod
    def increment_if_available(promotion_id: Any, discount_amount: Decimal) -> bool:
        """
        Single conditional UPDATE: bump the counter only while still below the cap.
        Returns False when the cap was already reached or the promotion was switched off.
        """
        updated = (
            Promotion.objects.filter(pk=promotion_id, is_active=True)
            .filter(
                Q(max_total_redemptions__isnull=True)
                | Q(current_total_redemptions__lt=F("max_total_redemptions"))
            )
            .update(
                current_total_redemptions=F("current_total_redemptions") + 1,
                total_discount_given=F("total_discount_given") + discount_amount,
            )
        )
        return updated == 1

    @staticmethod
    def count_customer_redemptions(promotion_id: Any, customer_id: str) -> int:
        return PromotionRedemption.objects.filter(
            promotion_id=promotion_id,
            customer_id=customer_id,
            status=PromotionRedemption.STATUS_APPLIED,
        ).count()
