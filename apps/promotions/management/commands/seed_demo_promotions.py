"""
Django management command to generate demo restaurants, promotions and loyalty programs.
"""

from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify
from faker import Faker

from apps.loyalty.models import LoyaltyProgram, LoyaltyReward, LoyaltyTier
from apps.promotions.models import Promotion
from apps.tenants.models import Tenant

TIERS = (
    ("Bronze", 0, Decimal("1.00"), Decimal("0.00")),
    ("Silver", 500, Decimal("1.50"), Decimal("5.00")),
    ("Gold", 1000, Decimal("2.00"), Decimal("10.00")),
)


class Command(BaseCommand):
    help = "Generate demo restaurants with promotions and a loyalty program"

    def add_arguments(self, parser):
        parser.add_argument("--tenants", type=int, default=3, help="Number of restaurants to create")
        parser.add_argument("--seed", type=int, default=42, help="Faker seed for repeatable data")

    def handle(self, *args, **options):
        # Must be in DEBUG mode
        if not settings.DEBUG:
            raise CommandError("🚫 Demo data generation only works in DEBUG mode.")

        fake = Faker()
        Faker.seed(options["seed"])

        self.stdout.write("🍕 Generating demo restaurants...")
        for _ in range(options["tenants"]):
            with transaction.atomic():
                tenant = self.create_tenant(fake)
                self.create_promotions(tenant)
                self.create_loyalty_program(tenant)
            self.stdout.write(f"  ✓ {tenant.name} ({tenant.slug})")

        self.stdout.write(self.style.SUCCESS("✅ Demo data generated"))

    def create_tenant(self, fake: Faker) -> Tenant:
        name = f"{fake.last_name()}'s {fake.random_element(('Pizza', 'Bistro', 'Noodle Bar', 'Taqueria'))}"
        slug = slugify(name)
        if Tenant.objects.filter(slug=slug).exists():
            slug = f"{slug}-{fake.unique.random_int(100, 999)}"
        return Tenant.objects.create(name=name, slug=slug)

    def create_promotions(self, tenant: Tenant) -> None:
        now = timezone.now()
        Promotion.objects.create(
            tenant=tenant,
            name="Summer Sale",
            code="SUMMER20",
            kind=Promotion.KIND_PERCENTAGE,
            discount_percent=Decimal("20.00"),
            min_order_amount=Decimal("25.00"),
            valid_from=now,
            valid_until=now + timedelta(days=90),
            is_public=True,
        )
        Promotion.objects.create(
            tenant=tenant,
            name="Welcome Five",
            code="WELCOME5",
            kind=Promotion.KIND_FIXED_AMOUNT,
            discount_amount=Decimal("5.00"),
            max_redemptions_per_customer=1,
            target_segment=Promotion.SEGMENT_NEW,
            valid_from=now,
        )
        Promotion.objects.create(
            tenant=tenant,
            name="Free Delivery Over 40",
            banner_text="Free delivery on orders over 40",
            kind=Promotion.KIND_FREE_DELIVERY,
            min_order_amount=Decimal("40.00"),
            auto_apply=True,
            stackable=True,
            valid_from=now,
        )

    def create_loyalty_program(self, tenant: Tenant) -> None:
        program = LoyaltyProgram.objects.create(tenant=tenant, name=f"{tenant.name} Rewards", welcome_bonus=50)
        for level, (name, threshold, multiplier, discount) in enumerate(TIERS, start=1):
            LoyaltyTier.objects.create(
                program=program,
                name=name,
                level=level,
                min_points_lifetime=threshold,
                points_multiplier=multiplier,
                discount_percent=discount,
            )
        LoyaltyReward.objects.create(tenant=tenant, name="Free Dessert", points_cost=100)
