"""
Promotion models for the Tablesail promotions platform.

Supports:
- Code-based and auto-apply promotions, scoped per restaurant (tenant)
- Discount kinds: percentage, fixed amount, free delivery, buy X get Y
- Stacking flag (non-stackable promotions never combine with each other)
- Usage limits (per customer, total redemptions)
- Minimum order amount and item count, validity window and weekly schedule
- Audience targeting by customer segment
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .discounts import (
    BuyXGetYDiscount,
    DiscountShape,
    FixedAmountDiscount,
    FreeDeliveryDiscount,
    PercentageDiscount,
)

logger = logging.getLogger(__name__)

MAX_CODE_LENGTH = 50


def normalize_code(code: str | None) -> str:
    """Normalize a promotion code to uppercase and trimmed."""
    return (code or "").strip().upper()


# ===============================================================================
# Promotion Model
# ===============================================================================


class Promotion(models.Model):
    """
    A discount campaign owned by one restaurant.
    Either entered by code at checkout or applied automatically.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="promotions",
        help_text=_("Restaurant that owns this promotion"),
    )

    # Identification
    name = models.CharField(max_length=200, help_text=_("Name shown on receipts and banners"))
    description = models.TextField(blank=True)
    banner_text = models.CharField(max_length=255, blank=True, help_text=_("Short text for storefront banners"))
    code = models.CharField(
        max_length=MAX_CODE_LENGTH,
        null=True,
        blank=True,
        help_text=_("Code customers type at checkout (case-insensitive); empty for auto-apply promotions"),
    )

    # Discount kind and value
    KIND_PERCENTAGE = "percentage"
    KIND_FIXED_AMOUNT = "fixed_amount"
    KIND_FREE_DELIVERY = "free_delivery"
    KIND_BUY_X_GET_Y = "buy_x_get_y"
    KINDS: ClassVar[tuple[tuple[str, Any], ...]] = (
        (KIND_PERCENTAGE, _("Percentage Discount")),
        (KIND_FIXED_AMOUNT, _("Fixed Amount Discount")),
        (KIND_FREE_DELIVERY, _("Free Delivery")),
        (KIND_BUY_X_GET_Y, _("Buy X Get Y")),
    )
    kind = models.CharField(max_length=20, choices=KINDS, default=KIND_PERCENTAGE)

    # Discount values (interpretation depends on kind)
    discount_percent = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text=_("Percentage discount (0-100)"),
    )
    discount_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Fixed discount amount"),
    )
    buy_quantity = models.PositiveIntegerField(null=True, blank=True, help_text=_("Units to buy per group"))
    get_quantity = models.PositiveIntegerField(null=True, blank=True, help_text=_("Free units per complete group"))
    applicable_item_ids = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Menu item ids counted for buy X get Y (empty = all items)"),
    )

    # Cap on discount
    max_discount_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Maximum discount per order (caps percentage discounts)"),
    )

    # Minimum requirements
    min_order_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text=_("Minimum subtotal to qualify"),
    )
    min_items_quantity = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        help_text=_("Minimum number of units in the cart"),
    )

    # Validity period (inclusive)
    valid_from = models.DateTimeField(default=timezone.now, help_text=_("When the promotion becomes valid"))
    valid_until = models.DateTimeField(null=True, blank=True, help_text=_("When it expires (null = never)"))

    # Weekly schedule, in the restaurant's local time
    WEEKDAYS: ClassVar[tuple[str, ...]] = (
        "monday",
        "tuesday",
        "wednesday",
        "thursday",
        "friday",
        "saturday",
        "sunday",
    )
    valid_days = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Lowercase weekday names the promotion runs on (empty = every day)"),
    )
    valid_hours_start = models.TimeField(null=True, blank=True, help_text=_("Daily start time, e.g. 15:00"))
    valid_hours_end = models.TimeField(null=True, blank=True, help_text=_("Daily end time, inclusive to the minute"))

    # Audience
    SEGMENT_ALL = "all_customers"
    SEGMENT_NEW = "new_customers"
    SEGMENT_RETURNING = "returning_customers"
    SEGMENT_VIP = "vip_customers"
    SEGMENT_INACTIVE = "inactive_customers"
    SEGMENTS: ClassVar[tuple[tuple[str, Any], ...]] = (
        (SEGMENT_ALL, _("All customers")),
        (SEGMENT_NEW, _("New customers")),
        (SEGMENT_RETURNING, _("Returning customers")),
        (SEGMENT_VIP, _("VIP customers")),
        (SEGMENT_INACTIVE, _("Inactive customers")),
    )
    target_segment = models.CharField(max_length=30, choices=SEGMENTS, default=SEGMENT_ALL)

    # Usage limits
    max_redemptions_per_customer = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Maximum successful uses per customer"),
    )
    max_total_redemptions = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text=_("Maximum successful uses across all customers"),
    )

    # Usage tracking (maintained by the redemption recorder with F() updates)
    current_total_redemptions = models.PositiveIntegerField(default=0)
    total_discount_given = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # Behaviour flags
    auto_apply = models.BooleanField(default=False, help_text=_("Apply without a code when conditions are met"))
    is_active = models.BooleanField(default=True, help_text=_("Manual on/off switch"))
    stackable = models.BooleanField(default=False, help_text=_("Can combine with other promotions"))
    is_public = models.BooleanField(default=False, help_text=_("Show in storefront suggestions even if code-based"))

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "promotions"
        verbose_name = _("Promotion")
        verbose_name_plural = _("Promotions")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["tenant", "code"]),
            models.Index(fields=["tenant", "auto_apply", "is_active"], name="idx_promotion_auto_apply"),
            models.Index(fields=["valid_from", "valid_until"]),
        )
        constraints: ClassVar[tuple[models.UniqueConstraint, ...]] = (
            models.UniqueConstraint(fields=["tenant", "code"], name="unique_promotion_code_per_tenant"),
        )

    def __str__(self) -> str:
        return f"{self.code} - {self.name}" if self.code else self.name

    def save(self, *args: Any, **kwargs: Any) -> None:
        """Normalize code to uppercase before saving."""
        self.code = normalize_code(self.code) or None
        super().save(*args, **kwargs)

    def clean(self) -> None:
        """Validate promotion configuration."""
        super().clean()
        self._validate_discount_values()
        self._validate_dates()
        self._validate_code()

    def _validate_discount_values(self) -> None:
        """Validate kind and value consistency."""
        if self.kind == self.KIND_PERCENTAGE:
            if self.discount_percent is None:
                raise ValidationError("Percentage discount requires discount_percent value")
            if self.discount_percent <= 0 or self.discount_percent > 100:  # noqa: PLR2004
                raise ValidationError("Percentage must be greater than 0 and at most 100")
        elif self.kind == self.KIND_FIXED_AMOUNT:
            if self.discount_amount is None:
                raise ValidationError("Fixed discount requires discount_amount value")
            if self.discount_amount <= 0:
                raise ValidationError("Fixed discount amount must be positive")
        elif self.kind == self.KIND_BUY_X_GET_Y:
            if not self.buy_quantity or not self.get_quantity:
                raise ValidationError("Buy X get Y requires buy_quantity and get_quantity of at least 1")
            if not isinstance(self.applicable_item_ids, list):
                raise ValidationError("applicable_item_ids must be a list of item ids")

    def _validate_dates(self) -> None:
        """Validate date range and weekly schedule."""
        if self.valid_until and self.valid_from and self.valid_until < self.valid_from:
            raise ValidationError("valid_until must be after valid_from")
        if not isinstance(self.valid_days, list) or any(day not in self.WEEKDAYS for day in self.valid_days):
            raise ValidationError(f"valid_days must only contain: {', '.join(self.WEEKDAYS)}")
        if (self.valid_hours_start is None) != (self.valid_hours_end is None):
            raise ValidationError("valid_hours_start and valid_hours_end must be set together")
        if self.valid_hours_start is not None and self.valid_hours_start >= self.valid_hours_end:
            raise ValidationError("valid_hours_start must be before valid_hours_end")

    def _validate_code(self) -> None:
        """Code-based promotions need a code to be redeemable at all."""
        if not self.auto_apply and not normalize_code(self.code):
            raise ValidationError("Promotions that are not auto-applied require a code")

    @property
    def requires_code(self) -> bool:
        return bool(self.code) and not self.auto_apply

    @property
    def affects_delivery(self) -> bool:
        return self.kind == self.KIND_FREE_DELIVERY

    def is_within_schedule(self, local_now: datetime) -> bool:
        """Weekday and daily hours check; `local_now` must be in the restaurant's time zone."""
        if self.valid_days and self.WEEKDAYS[local_now.weekday()] not in self.valid_days:
            return False
        if self.valid_hours_start is not None and self.valid_hours_end is not None:
            minute = local_now.time().replace(second=0, microsecond=0)
            return self.valid_hours_start <= minute <= self.valid_hours_end
        return True

    @property
    def discount_shape(self) -> DiscountShape:
        """Typed view of the discount columns relevant to this promotion's kind."""
        if self.kind == self.KIND_PERCENTAGE:
            return PercentageDiscount(percent=self.discount_percent or Decimal("0"))
        if self.kind == self.KIND_FIXED_AMOUNT:
            return FixedAmountDiscount(amount=self.discount_amount or Decimal("0"))
        if self.kind == self.KIND_FREE_DELIVERY:
            return FreeDeliveryDiscount()
        if self.kind == self.KIND_BUY_X_GET_Y:
            return BuyXGetYDiscount(
                buy_quantity=self.buy_quantity or 0,
                get_quantity=self.get_quantity or 0,
                applicable_item_ids=frozenset(str(item_id) for item_id in self.applicable_item_ids or ()),
            )
        raise ValueError(f"Unknown promotion kind: {self.kind}")

    @property
    def is_depleted(self) -> bool:
        """Check if the promotion has reached its total redemption limit."""
        if self.max_total_redemptions is None:
            return False
        return self.current_total_redemptions >= self.max_total_redemptions


# ===============================================================================
# Redemption Model
# ===============================================================================


class PromotionRedemption(models.Model):
    """
    One confirmed use of a promotion on one order.
    Created at checkout completion; only ever changed by voiding.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Relationships
    promotion = models.ForeignKey(
        Promotion,
        on_delete=models.PROTECT,
        related_name="redemptions",
        help_text=_("The promotion that was redeemed"),
    )
    tenant = models.ForeignKey(
        "tenants.Tenant",
        on_delete=models.CASCADE,
        related_name="promotion_redemptions",
    )
    customer_id = models.CharField(max_length=255, null=True, blank=True, help_text=_("Customer identity, if known"))
    order_id = models.CharField(max_length=255, help_text=_("Order this redemption belongs to"))

    discount_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))

    STATUS_APPLIED = "applied"
    STATUS_VOIDED = "voided"
    STATUS_CHOICES: ClassVar[tuple[tuple[str, str], ...]] = (
        (STATUS_APPLIED, "Applied"),
        (STATUS_VOIDED, "Voided (Order Cancelled or Refunded)"),
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_APPLIED)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    voided_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "promotion_redemptions"
        verbose_name = _("Promotion Redemption")
        verbose_name_plural = _("Promotion Redemptions")
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["promotion", "customer_id", "status"], name="idx_redemption_customer"),
            models.Index(fields=["tenant", "order_id"]),
        )
        constraints: ClassVar[tuple[models.UniqueConstraint, ...]] = (
            # Recording is idempotent per order
            models.UniqueConstraint(fields=["promotion", "order_id"], name="unique_promotion_per_order"),
        )

    def __str__(self) -> str:
        return f"{self.promotion_id} on order {self.order_id}"

    def mark_voided(self) -> bool:
        """
        Void this redemption and release its share of the promotion counters.
        Returns False when it was already voided.
        """
        updated = PromotionRedemption.objects.filter(pk=self.pk, status=self.STATUS_APPLIED).update(
            status=self.STATUS_VOIDED,
            voided_at=timezone.now(),
        )
        if not updated:
            return False

        Promotion.objects.filter(pk=self.promotion_id, current_total_redemptions__gt=0).update(
            current_total_redemptions=F("current_total_redemptions") - 1,
            total_discount_given=F("total_discount_given") - self.discount_amount,
        )
        self.refresh_from_db(fields=["status", "voided_at"])
        return True
