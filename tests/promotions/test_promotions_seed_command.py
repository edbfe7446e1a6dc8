"""
Tests for the seed_demo_promotions management command.
"""

from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from apps.loyalty.models import LoyaltyProgram
from apps.promotions.models import Promotion
from apps.promotions.services import PromotionService
from apps.tenants.models import Tenant
from tests.factories.promotion_factories import make_cart


class SeedDemoPromotionsCommandTests(TestCase):
    @override_settings(DEBUG=True)
    def test_creates_usable_demo_restaurants(self):
        out = StringIO()
        call_command("seed_demo_promotions", tenants=2, stdout=out)

        self.assertEqual(Tenant.objects.count(), 2)
        self.assertEqual(Promotion.objects.count(), 6)
        self.assertEqual(LoyaltyProgram.objects.count(), 2)
        self.assertIn("Demo data generated", out.getvalue())

        tenant = Tenant.objects.first()
        result = PromotionService.validate(tenant.pk, make_cart("30.00"), code="summer20")
        self.assertTrue(result.is_valid)

    @override_settings(DEBUG=False)
    def test_refuses_outside_debug(self):
        with self.assertRaises(CommandError):
            call_command("seed_demo_promotions", stdout=StringIO())
