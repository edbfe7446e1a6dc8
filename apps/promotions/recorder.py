"""
Redemption recording: persists one use of a promotion once an order is confirmed.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from django.db import IntegrityError, transaction

from apps.common.types import Err, Ok, Result

from .cart import to_money
from .errors import ReasonCode
from .models import Promotion, PromotionRedemption
from .repository import PromotionRepository, parse_uuid, with_datastore_retry

logger = logging.getLogger(__name__)


class _RedemptionRejected(Exception):
    """Raised inside the recording transaction to roll back the inserted row."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class RedemptionRecorder:
    """
    Records redemptions exactly once per (promotion, order).

    The cap check and the counter increment are one conditional UPDATE, so
    concurrent confirmations can never push a promotion past its total limit.
    """

    @classmethod
    @with_datastore_retry
    def record(
        cls,
        promotion_id: Any,
        customer_id: str | None,
        order_id: str,
        discount_amount: Decimal,
        tenant_id: Any | None = None,
    ) -> Result[PromotionRedemption, ReasonCode]:
        parsed_id = parse_uuid(promotion_id)
        if parsed_id is None:
            return Err(ReasonCode.NOT_FOUND)
        filters: dict[str, Any] = {"pk": parsed_id}
        if tenant_id is not None:
            filters["tenant_id"] = tenant_id
        promotion = Promotion.objects.filter(**filters).first()
        if promotion is None:
            return Err(ReasonCode.NOT_FOUND)

        existing = PromotionRedemption.objects.filter(promotion=promotion, order_id=order_id).first()
        if existing is not None:
            logger.info(
                f"♻️ [Promotions] Redemption already recorded for order {order_id}",
                extra={"promotion_id": str(promotion.id), "order_id": order_id},
            )
            return Ok(existing)

        amount = to_money(discount_amount)
        try:
            with transaction.atomic():
                redemption = PromotionRedemption.objects.create(
                    promotion=promotion,
                    tenant_id=promotion.tenant_id,
                    customer_id=customer_id or None,
                    order_id=order_id,
                    discount_amount=amount,
                )
                if not PromotionRepository.increment_if_available(promotion.pk, amount):
                    raise _RedemptionRejected("total redemption limit reached")

                # The UPDATE above holds the promotion row lock, so this count
                # sees every redemption committed before ours
                if customer_id and promotion.max_redemptions_per_customer is not None:
                    used = PromotionRepository.count_customer_redemptions(promotion.pk, customer_id)
                    if used > promotion.max_redemptions_per_customer:
                        raise _RedemptionRejected("customer redemption limit reached")
        except _RedemptionRejected as rejected:
            logger.warning(
                f"⚠️ [Promotions] Redemption lost for order {order_id}: {rejected.detail}",
                extra={"promotion_id": str(promotion.id), "order_id": order_id, "customer_id": customer_id},
            )
            return Err(ReasonCode.RACE_LOST)
        except IntegrityError:
            # A concurrent call for the same order won the insert
            existing = PromotionRedemption.objects.filter(promotion=promotion, order_id=order_id).first()
            if existing is None:
                raise
            return Ok(existing)

        logger.info(
            f"✅ [Promotions] Recorded redemption of {promotion.name} on order {order_id}",
            extra={
                "promotion_id": str(promotion.id),
                "order_id": order_id,
                "customer_id": customer_id,
                "discount_amount": str(amount),
            },
        )
        return Ok(redemption)

    @classmethod
    @with_datastore_retry
    def void(
        cls,
        promotion_id: Any,
        order_id: str,
        tenant_id: Any | None = None,
    ) -> Result[PromotionRedemption, ReasonCode]:
        """Void the redemption for a cancelled or refunded order; repeated calls are no-ops."""
        parsed_id = parse_uuid(promotion_id)
        if parsed_id is None:
            return Err(ReasonCode.NOT_FOUND)
        filters: dict[str, Any] = {"promotion_id": parsed_id, "order_id": order_id}
        if tenant_id is not None:
            filters["tenant_id"] = tenant_id
        redemption = PromotionRedemption.objects.filter(**filters).first()
        if redemption is None:
            return Err(ReasonCode.NOT_FOUND)

        with transaction.atomic():
            released = redemption.mark_voided()

        if released:
            logger.info(
                f"↩️ [Promotions] Voided redemption on order {order_id}",
                extra={"promotion_id": str(promotion_id), "order_id": order_id},
            )
        return Ok(redemption)
