# ===============================================================================
# PROMOTION TEST FACTORIES FOR TABLESAIL
# ===============================================================================
"""
Builders for tenants, promotions, carts and loyalty programs with sensible defaults.
Every builder takes keyword overrides for the fields a test cares about.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Any

from django.utils import timezone
from django.utils.text import slugify

from apps.loyalty.models import LoyaltyProgram, LoyaltyReward, LoyaltyTier
from apps.promotions.cart import CartSnapshot, LineItem
from apps.promotions.models import Promotion
from apps.tenants.models import Tenant

_counter = {"tenant": 0}


def create_tenant(name: str = "Joe's Pizza", **overrides: Any) -> Tenant:
    _counter["tenant"] += 1
    defaults: dict[str, Any] = {
        "name": name,
        "slug": f"{slugify(name)}-{_counter['tenant']}",
    }
    defaults.update(overrides)
    return Tenant.objects.create(**defaults)


def create_promotion(tenant: Tenant, **overrides: Any) -> Promotion:
    """Active, code-based 20% promotion valid since yesterday unless overridden."""
    defaults: dict[str, Any] = {
        "tenant": tenant,
        "name": "Summer Sale",
        "code": "SUMMER20",
        "kind": Promotion.KIND_PERCENTAGE,
        "discount_percent": Decimal("20.00"),
        "valid_from": timezone.now() - timedelta(days=1),
        "is_active": True,
        "stackable": False,
    }
    defaults.update(overrides)
    return Promotion.objects.create(**defaults)


def create_auto_promotion(tenant: Tenant, **overrides: Any) -> Promotion:
    overrides.setdefault("name", "Happy Hour")
    overrides.setdefault("code", None)
    overrides.setdefault("auto_apply", True)
    return create_promotion(tenant, **overrides)


def make_cart(
    subtotal: str = "30.00",
    delivery_fee: str = "0.00",
    tax_amount: str = "0.00",
    items: list[LineItem] | None = None,
) -> CartSnapshot:
    if items is None:
        items = [LineItem(item_id="pizza-margherita", quantity=1, unit_price=Decimal(subtotal), name="Margherita")]
    return CartSnapshot(
        items=items,
        subtotal=Decimal(subtotal),
        delivery_fee=Decimal(delivery_fee),
        tax_amount=Decimal(tax_amount),
    )


def create_loyalty_program(tenant: Tenant, with_tiers: bool = True, **overrides: Any) -> LoyaltyProgram:
    """Program earning 1 point per currency unit; Bronze (x1), Silver at 500 (x1.5), Gold at 1000 (x2)."""
    defaults: dict[str, Any] = {
        "tenant": tenant,
        "name": "Pizza Points",
        "points_per_currency_unit": Decimal("1.00"),
        "welcome_bonus": 0,
    }
    defaults.update(overrides)
    program = LoyaltyProgram.objects.create(**defaults)
    if with_tiers:
        LoyaltyTier.objects.create(program=program, name="Bronze", level=1, min_points_lifetime=0)
        LoyaltyTier.objects.create(
            program=program,
            name="Silver",
            level=2,
            min_points_lifetime=500,
            points_multiplier=Decimal("1.50"),
            discount_percent=Decimal("5.00"),
        )
        LoyaltyTier.objects.create(
            program=program,
            name="Gold",
            level=3,
            min_points_lifetime=1000,
            points_multiplier=Decimal("2.00"),
            discount_percent=Decimal("10.00"),
        )
    return program


def create_reward(tenant: Tenant, **overrides: Any) -> LoyaltyReward:
    defaults: dict[str, Any] = {
        "tenant": tenant,
        "name": "Free Dessert",
        "points_cost": 100,
        "valid_from": timezone.now() - timedelta(days=1),
    }
    defaults.update(overrides)
    return LoyaltyReward.objects.create(**defaults)
