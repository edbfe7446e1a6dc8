"""
Loyalty services for the Tablesail promotions platform.
Points are earned on confirmed orders and spent on rewards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Any

from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from apps.common.types import Err, Ok, Result
from apps.promotions.repository import parse_uuid, with_datastore_retry
from apps.tenants.models import Tenant

from .errors import LoyaltyError
from .models import (
    LoyaltyAccount,
    LoyaltyProgram,
    LoyaltyReward,
    LoyaltyTier,
    LoyaltyTransaction,
    RewardRedemption,
)

logger = logging.getLogger(__name__)

# Time a customer has to use a redeemed reward
REWARD_CLAIM_WINDOW = timedelta(hours=24)


# ===============================================================================
# Data Classes for Results
# ===============================================================================


@dataclass
class EarnResult:
    """Outcome of crediting points for one order."""

    account: LoyaltyAccount
    points_earned: int = 0
    bonus_points: int = 0
    new_tier: LoyaltyTier | None = None
    already_recorded: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "account_id": str(self.account.pk),
            "points_earned": self.points_earned,
            "bonus_points": self.bonus_points,
            "points_balance": self.account.points_balance,
            "new_tier": self.new_tier.name if self.new_tier else None,
            "already_recorded": self.already_recorded,
        }


@dataclass
class RedeemResult:
    """Outcome of spending points on a reward."""

    redemption: RewardRedemption
    remaining_points: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "redemption_id": str(self.redemption.pk),
            "reward_name": self.redemption.reward.name,
            "points_used": self.redemption.points_used,
            "remaining_points": self.remaining_points,
            "expires_at": self.redemption.expires_at.isoformat() if self.redemption.expires_at else None,
        }


class _RedeemRejected(Exception):
    """Raised inside the redemption transaction to roll everything back."""

    def __init__(self, reason: LoyaltyError) -> None:
        super().__init__(str(reason))
        self.reason = reason


# ===============================================================================
# Loyalty Service
# ===============================================================================


class LoyaltyService:
    """Service for loyalty program operations."""

    @staticmethod
    def _active_tenant(tenant_id: Any) -> Tenant | None:
        parsed = parse_uuid(tenant_id)
        if parsed is None:
            return None
        return Tenant.objects.filter(pk=parsed, is_active=True).first()

    @staticmethod
    def calculate_points(order_total: Decimal, program: LoyaltyProgram, tier: LoyaltyTier | None) -> int:
        """Base points are floored before the tier multiplier, and the product is floored again."""
        base = (order_total * program.points_per_currency_unit).to_integral_value(rounding=ROUND_FLOOR)
        multiplier = tier.points_multiplier if tier and tier.points_multiplier else Decimal("1")
        return int((base * multiplier).to_integral_value(rounding=ROUND_FLOOR))

    @classmethod
    @with_datastore_retry
    def earn_points(
        cls,
        tenant_id: Any,
        customer_id: str,
        order_id: str,
        order_total: Any,
    ) -> Result[EarnResult, LoyaltyError]:
        """
        Credit points for a confirmed order, opening the account on the first order.
        Calling again for the same order changes nothing.
        """
        try:
            total = Decimal(str(order_total))
        except (InvalidOperation, ValueError):
            return Err(LoyaltyError.VALIDATION_ERROR)
        if not customer_id or not order_id or not total.is_finite() or total < 0:
            return Err(LoyaltyError.VALIDATION_ERROR)

        tenant = cls._active_tenant(tenant_id)
        if tenant is None:
            return Err(LoyaltyError.VALIDATION_ERROR)
        program = LoyaltyProgram.objects.filter(tenant=tenant, is_active=True).first()
        if program is None:
            return Err(LoyaltyError.NOT_FOUND)

        try:
            with transaction.atomic():
                return Ok(cls._credit_order(tenant, program, customer_id, order_id, total))
        except IntegrityError:
            # A concurrent call for the same order committed first
            account = LoyaltyAccount.objects.filter(program=program, customer_id=customer_id).first()
            if account is None:
                raise
            return Ok(EarnResult(account=account, already_recorded=True))

    @classmethod
    def _credit_order(
        cls,
        tenant: Tenant,
        program: LoyaltyProgram,
        customer_id: str,
        order_id: str,
        total: Decimal,
    ) -> EarnResult:
        account, created = LoyaltyAccount.objects.select_for_update().get_or_create(
            program=program,
            customer_id=customer_id,
            defaults={"tenant": tenant},
        )

        already = LoyaltyTransaction.objects.filter(
            account=account,
            order_id=order_id,
            transaction_type=LoyaltyTransaction.TYPE_EARN,
        ).exists()
        if already:
            logger.info(
                f"♻️ [Loyalty] Points already earned for order {order_id}",
                extra={"account_id": str(account.pk), "order_id": order_id},
            )
            return EarnResult(account=account, already_recorded=True)

        bonus = 0
        if created:
            cls._assign_initial_tier(account)
            if program.welcome_bonus > 0:
                bonus = program.welcome_bonus
                cls._credit(account, bonus, LoyaltyTransaction.TYPE_BONUS, order_id, "Welcome bonus for joining")

        points = cls.calculate_points(total, program, account.current_tier)
        LoyaltyAccount.objects.filter(pk=account.pk).update(
            total_orders=F("total_orders") + 1,
            total_spent=F("total_spent") + total,
        )
        cls._credit(account, points, LoyaltyTransaction.TYPE_EARN, order_id, f"Points earned from order {order_id}")

        new_tier = cls._check_tier_upgrade(account)

        logger.info(
            f"⭐ [Loyalty] {points} points earned by {customer_id} on order {order_id}",
            extra={"account_id": str(account.pk), "order_id": order_id, "points": points, "bonus": bonus},
        )
        return EarnResult(account=account, points_earned=points, bonus_points=bonus, new_tier=new_tier)

    @staticmethod
    def _credit(account: LoyaltyAccount, points: int, transaction_type: str, order_id: str, description: str) -> None:
        # Update membership atomically to prevent race conditions
        LoyaltyAccount.objects.filter(pk=account.pk).update(
            points_balance=F("points_balance") + points,
            points_lifetime=F("points_lifetime") + points,
        )
        account.refresh_from_db()
        LoyaltyTransaction.objects.create(
            account=account,
            transaction_type=transaction_type,
            points=points,
            balance_after=account.points_balance,
            order_id=order_id,
            description=description,
        )

    @staticmethod
    def _assign_initial_tier(account: LoyaltyAccount) -> None:
        initial_tier = LoyaltyTier.objects.filter(program=account.program, min_points_lifetime=0).order_by("level").first()
        if initial_tier:
            account.current_tier = initial_tier
            account.save(update_fields=["current_tier"])

    @staticmethod
    def _check_tier_upgrade(account: LoyaltyAccount) -> LoyaltyTier | None:
        """Move the account to the highest tier its lifetime points qualify for."""
        current_level = account.current_tier.level if account.current_tier else -1

        eligible_tier = (
            LoyaltyTier.objects.filter(
                program=account.program,
                min_points_lifetime__lte=account.points_lifetime,
                level__gt=current_level,
            )
            .order_by("-level")
            .first()
        )
        if eligible_tier is None:
            return None

        account.current_tier = eligible_tier
        account.save(update_fields=["current_tier"])
        logger.info(
            f"🏅 [Loyalty] Customer {account.customer_id} upgraded to {eligible_tier.name}",
            extra={"account_id": str(account.pk), "new_tier": eligible_tier.name},
        )
        return eligible_tier

    @classmethod
    @with_datastore_retry
    def redeem_reward(
        cls,
        tenant_id: Any,
        customer_id: str,
        reward_id: Any,
        now: datetime | None = None,
    ) -> Result[RedeemResult, LoyaltyError]:
        """
        Spend points on a reward. Either the points are deducted, the reward
        counter incremented and the redemption stored, or nothing changes.
        """
        now = now or timezone.now()
        parsed_reward_id = parse_uuid(reward_id)
        if not customer_id or parsed_reward_id is None:
            return Err(LoyaltyError.VALIDATION_ERROR)
        tenant = cls._active_tenant(tenant_id)
        if tenant is None:
            return Err(LoyaltyError.VALIDATION_ERROR)

        account = LoyaltyAccount.objects.filter(tenant=tenant, customer_id=customer_id).first()
        reward = LoyaltyReward.objects.filter(tenant=tenant, pk=parsed_reward_id).first()
        if account is None or reward is None:
            return Err(LoyaltyError.NOT_FOUND)

        if account.points_balance < reward.points_cost:
            return Err(LoyaltyError.INSUFFICIENT_POINTS)
        if not reward.is_available_at(now):
            return Err(LoyaltyError.REWARD_NOT_AVAILABLE)
        if reward.max_redemptions_per_customer is not None:
            used = cls._customer_redemptions(account, reward)
            if used >= reward.max_redemptions_per_customer:
                return Err(LoyaltyError.CUSTOMER_LIMIT_REACHED)
        if reward.max_total_redemptions is not None and reward.current_total_redemptions >= reward.max_total_redemptions:
            return Err(LoyaltyError.GLOBAL_LIMIT_REACHED)

        try:
            with transaction.atomic():
                redemption = cls._spend(account, reward, now)
        except _RedeemRejected as rejected:
            logger.warning(
                f"⚠️ [Loyalty] Reward {reward.name} lost for {customer_id}: {rejected.reason}",
                extra={"account_id": str(account.pk), "reward_id": str(reward.pk)},
            )
            return Err(rejected.reason)

        account.refresh_from_db(fields=["points_balance", "points_redeemed"])
        logger.info(
            f"🎁 [Loyalty] {customer_id} redeemed {reward.name} for {reward.points_cost} points",
            extra={"account_id": str(account.pk), "reward_id": str(reward.pk), "redemption_id": str(redemption.pk)},
        )
        return Ok(RedeemResult(redemption=redemption, remaining_points=account.points_balance))

    @staticmethod
    def _customer_redemptions(account: LoyaltyAccount, reward: LoyaltyReward) -> int:
        return RewardRedemption.objects.filter(
            account=account,
            reward=reward,
            status__in=RewardRedemption.COUNTED_STATUSES,
        ).count()

    @classmethod
    def _spend(cls, account: LoyaltyAccount, reward: LoyaltyReward, now: datetime) -> RewardRedemption:
        cost = reward.points_cost
        debited = LoyaltyAccount.objects.filter(pk=account.pk, points_balance__gte=cost).update(
            points_balance=F("points_balance") - cost,
            points_redeemed=F("points_redeemed") + cost,
        )
        if not debited:
            raise _RedeemRejected(LoyaltyError.RACE_LOST)

        claimed = (
            LoyaltyReward.objects.filter(pk=reward.pk, is_active=True)
            .filter(
                Q(max_total_redemptions__isnull=True)
                | Q(current_total_redemptions__lt=F("max_total_redemptions"))
            )
            .update(current_total_redemptions=F("current_total_redemptions") + 1)
        )
        if not claimed:
            raise _RedeemRejected(LoyaltyError.RACE_LOST)

        # The reward row is locked by the UPDATE above, so this count is current
        if reward.max_redemptions_per_customer is not None:
            if cls._customer_redemptions(account, reward) >= reward.max_redemptions_per_customer:
                raise _RedeemRejected(LoyaltyError.RACE_LOST)

        account.refresh_from_db(fields=["points_balance"])
        redemption = RewardRedemption.objects.create(
            account=account,
            reward=reward,
            points_used=cost,
            expires_at=now + REWARD_CLAIM_WINDOW,
        )
        LoyaltyTransaction.objects.create(
            account=account,
            transaction_type=LoyaltyTransaction.TYPE_REDEEM,
            points=-cost,
            balance_after=account.points_balance,
            description=f"Redeemed reward: {reward.name}",
        )
        return redemption

    @classmethod
    @with_datastore_retry
    def account_summary(cls, tenant_id: Any, customer_id: str) -> Result[dict[str, Any], LoyaltyError]:
        """Balance, tier and progress toward the next tier for one customer."""
        if not customer_id:
            return Err(LoyaltyError.VALIDATION_ERROR)
        tenant = cls._active_tenant(tenant_id)
        if tenant is None:
            return Err(LoyaltyError.VALIDATION_ERROR)

        account = (
            LoyaltyAccount.objects.select_related("current_tier", "program")
            .filter(tenant=tenant, customer_id=customer_id)
            .first()
        )
        if account is None:
            return Err(LoyaltyError.NOT_FOUND)

        current_level = account.current_tier.level if account.current_tier else -1
        next_tier = LoyaltyTier.objects.filter(program=account.program, level__gt=current_level).order_by("level").first()
        return Ok(
            {
                "account_id": str(account.pk),
                "program": account.program.name,
                "points_balance": account.points_balance,
                "points_lifetime": account.points_lifetime,
                "points_redeemed": account.points_redeemed,
                "total_orders": account.total_orders,
                "total_spent": str(account.total_spent),
                "tier": account.current_tier.name if account.current_tier else None,
                "tier_discount_percent": str(account.current_tier.discount_percent) if account.current_tier else "0.00",
                "next_tier": next_tier.name if next_tier else None,
                "points_to_next_tier": (
                    max(0, next_tier.min_points_lifetime - account.points_lifetime) if next_tier else None
                ),
            }
        )
