"""
Loyalty models for the Tablesail promotions platform.

Supports:
- One points program per restaurant, with a welcome bonus
- Tiers that multiply earned points, reached by lifetime points
- Per-customer accounts and an append-only transaction ledger
- Rewards bought with points, with per-customer and total limits
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import ClassVar

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# Program and Tiers
# ===============================================================================


class LoyaltyProgram(models.Model):
    """
    Configuration for a restaurant's loyalty program.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="loyalty_programs",
    )

    # Program identity
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    # Point earning rates
    points_per_currency_unit = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("1.00"),
        validators=[MinValueValidator(0)],
        help_text=_("Points earned per currency unit spent"),
    )
    welcome_bonus = models.PositiveIntegerField(
        default=0,
        help_text=_("Points credited when a customer's account is created"),
    )

    # Status
    is_active = models.BooleanField(default=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "loyalty_programs"
        verbose_name = _("Loyalty Program")
        verbose_name_plural = _("Loyalty Programs")
        indexes: ClassVar[tuple[models.Index, ...]] = (models.Index(fields=["tenant", "is_active"]),)

    def __str__(self) -> str:
        return self.name


class LoyaltyTier(models.Model):
    """
    Loyalty program tier levels with benefits.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    program = models.ForeignKey(
        LoyaltyProgram,
        on_delete=models.CASCADE,
        related_name="tiers",
    )

    # Tier identity
    name = models.CharField(max_length=100)
    level = models.PositiveIntegerField(default=1, help_text=_("Higher levels are better tiers"))

    # Qualification
    min_points_lifetime = models.PositiveIntegerField(
        default=0,
        help_text=_("Minimum lifetime points to reach this tier"),
    )

    # Benefits
    points_multiplier = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("1.00"),
        help_text=_("Point earning multiplier"),
    )
    discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text=_("Discount advertised to tier members"),
    )

    class Meta:
        db_table = "loyalty_tiers"
        verbose_name = _("Loyalty Tier")
        verbose_name_plural = _("Loyalty Tiers")
        ordering: ClassVar[tuple[str, ...]] = ("level",)
        constraints: ClassVar[tuple[models.UniqueConstraint, ...]] = (
            models.UniqueConstraint(fields=["program", "level"], name="unique_tier_level_per_program"),
        )

    def __str__(self) -> str:
        return f"{self.program.name} - {self.name}"


# ===============================================================================
# Accounts and Ledger
# ===============================================================================


class LoyaltyAccount(models.Model):
    """
    A customer's points balance and status within one restaurant's program.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="loyalty_accounts",
    )
    program = models.ForeignKey(
        LoyaltyProgram,
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    customer_id = models.CharField(max_length=255, help_text=_("Customer identity within the restaurant"))

    current_tier = models.ForeignKey(
        LoyaltyTier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="members",
    )

    # Points
    points_balance = models.PositiveIntegerField(default=0)
    points_lifetime = models.PositiveIntegerField(default=0)
    points_redeemed = models.PositiveIntegerField(default=0)

    # Spend tracking
    total_orders = models.PositiveIntegerField(default=0)
    total_spent = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "loyalty_accounts"
        verbose_name = _("Loyalty Account")
        verbose_name_plural = _("Loyalty Accounts")
        constraints: ClassVar[tuple[models.UniqueConstraint, ...]] = (
            models.UniqueConstraint(fields=["program", "customer_id"], name="unique_account_per_program"),
        )
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["tenant", "customer_id"]),
            models.Index(fields=["current_tier"]),
        )

    def __str__(self) -> str:
        return f"{self.customer_id} - {self.program.name}"


class LoyaltyTransaction(models.Model):
    """
    Tracks all loyalty point movements.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    account = models.ForeignKey(
        LoyaltyAccount,
        on_delete=models.CASCADE,
        related_name="transactions",
    )

    TYPE_EARN = "earn"
    TYPE_BONUS = "bonus"
    TYPE_REDEEM = "redeem"
    TRANSACTION_TYPES: ClassVar[tuple[tuple[str, str], ...]] = (
        (TYPE_EARN, "Points Earned"),
        (TYPE_BONUS, "Bonus Points"),
        (TYPE_REDEEM, "Points Redeemed"),
    )
    transaction_type = models.CharField(max_length=20, choices=TRANSACTION_TYPES)

    # Points (positive = credit, negative = debit)
    points = models.IntegerField(help_text=_("Points change (positive or negative)"))
    balance_after = models.PositiveIntegerField(help_text=_("Balance after transaction"))

    order_id = models.CharField(max_length=255, null=True, blank=True)
    description = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "loyalty_transactions"
        verbose_name = _("Loyalty Transaction")
        verbose_name_plural = _("Loyalty Transactions")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (models.Index(fields=["account", "-created_at"]),)
        constraints: ClassVar[tuple[models.UniqueConstraint, ...]] = (
            # Points are earned once per order
            models.UniqueConstraint(
                fields=["account", "order_id"],
                condition=Q(transaction_type="earn"),
                name="unique_earn_per_order",
            ),
        )

    def __str__(self) -> str:
        return f"{self.transaction_type}: {self.points:+d} points"


# ===============================================================================
# Rewards
# ===============================================================================


class LoyaltyReward(models.Model):
    """
    Something a customer can buy with points (free dessert, 5 off, ...).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="loyalty_rewards",
    )

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    points_cost = models.PositiveIntegerField(validators=[MinValueValidator(1)])

    # Validity period (inclusive)
    valid_from = models.DateTimeField(default=timezone.now)
    valid_until = models.DateTimeField(null=True, blank=True)

    # Usage limits
    max_redemptions_per_customer = models.PositiveIntegerField(null=True, blank=True)
    max_total_redemptions = models.PositiveIntegerField(null=True, blank=True)
    current_total_redemptions = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "loyalty_rewards"
        verbose_name = _("Loyalty Reward")
        verbose_name_plural = _("Loyalty Rewards")
        ordering: ClassVar[tuple[str, ...]] = ("points_cost", "name")

    def __str__(self) -> str:
        return f"{self.name} ({self.points_cost} pts)"

    def is_available_at(self, now: datetime) -> bool:
        if not self.is_active or now < self.valid_from:
            return False
        return self.valid_until is None or now <= self.valid_until


class RewardRedemption(models.Model):
    """
    A reward bought with points. Pending until used on an order.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    account = models.ForeignKey(
        LoyaltyAccount,
        on_delete=models.CASCADE,
        related_name="reward_redemptions",
    )
    reward = models.ForeignKey(
        LoyaltyReward,
        on_delete=models.PROTECT,
        related_name="redemptions",
    )
    points_used = models.PositiveIntegerField()

    STATUS_PENDING = "pending"
    STATUS_APPLIED = "applied"
    STATUS_EXPIRED = "expired"
    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        (STATUS_PENDING, "Pending"),
        (STATUS_APPLIED, "Applied to an Order"),
        (STATUS_EXPIRED, "Expired"),
    )
    # Statuses that count against the per-customer limit
    COUNTED_STATUSES: ClassVar[tuple[str, ...]] = (STATUS_PENDING, STATUS_APPLIED)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)

    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "loyalty_reward_redemptions"
        verbose_name = _("Reward Redemption")
        verbose_name_plural = _("Reward Redemptions")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (models.Index(fields=["account", "reward", "status"]),)

    def __str__(self) -> str:
        return f"{self.reward.name} for {self.account.customer_id}"
