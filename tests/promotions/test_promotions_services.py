"""
Tests for PromotionService: validate, list_available, recalculate, finalize and void.
"""

import uuid
from datetime import datetime, time, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal
from unittest.mock import patch

from django.test import TestCase, override_settings
from django.utils import timezone

from apps.promotions.eligibility import OrderHistory
from apps.promotions.errors import ReasonCode
from apps.promotions.models import Promotion, PromotionRedemption
from apps.promotions.recorder import RedemptionRecorder
from apps.promotions.repository import PromotionRepository
from apps.promotions.services import PromotionService
from tests.factories.promotion_factories import (
    create_auto_promotion,
    create_promotion,
    create_tenant,
    make_cart,
)


class PromotionValidateTests(TestCase):
    def setUp(self):
        self.tenant = create_tenant()
        self.summer = create_promotion(self.tenant, min_order_amount=Decimal("25.00"))

    def test_summer_sale_preview(self):
        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="SUMMER20")

        self.assertTrue(result.is_valid)
        self.assertEqual(result.discount_preview, Decimal("6.00"))
        self.assertEqual(result.promotion_id, str(self.summer.pk))
        self.assertEqual(result.detailed_calculation.adjusted_subtotal, Decimal("24.00"))

    def test_below_minimum(self):
        result = PromotionService.validate(self.tenant.pk, make_cart("20.00"), code="SUMMER20")

        self.assertFalse(result.is_valid)
        self.assertEqual(result.reason, ReasonCode.BELOW_MINIMUM)
        self.assertEqual(result.promotion_id, str(self.summer.pk))
        self.assertIn("minimum", result.error_message)

    def test_code_is_case_insensitive(self):
        self.assertTrue(PromotionService.validate(self.tenant.pk, make_cart("30.00"), code=" summer20 ").is_valid)

    def test_unknown_code(self):
        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="NOPE")
        self.assertEqual(result.reason, ReasonCode.NOT_FOUND)

    def test_codes_are_tenant_scoped(self):
        other = create_tenant("Burger Barn")
        result = PromotionService.validate(other.pk, make_cart("30.00"), code="SUMMER20")
        self.assertEqual(result.reason, ReasonCode.NOT_FOUND)

    def test_inactive_promotion(self):
        self.summer.is_active = False
        self.summer.save()
        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="SUMMER20")
        self.assertEqual(result.reason, ReasonCode.INACTIVE)

    def test_global_limit_regardless_of_cart(self):
        create_promotion(self.tenant, code="ONEOFF", max_total_redemptions=1, current_total_redemptions=1)
        for subtotal in ("5.00", "30.00", "300.00"):
            result = PromotionService.validate(self.tenant.pk, make_cart(subtotal), code="ONEOFF")
            self.assertEqual(result.reason, ReasonCode.GLOBAL_LIMIT_REACHED)

    def test_customer_limit(self):
        limited = create_promotion(self.tenant, code="ONCE", max_redemptions_per_customer=1)
        RedemptionRecorder.record(limited.pk, "cust-1", "order-1", Decimal("6.00"))

        returning = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="ONCE", customer_id="cust-1")
        newcomer = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="ONCE", customer_id="cust-2")

        self.assertEqual(returning.reason, ReasonCode.CUSTOMER_LIMIT_REACHED)
        self.assertTrue(newcomer.is_valid)

    def test_validate_never_records_usage(self):
        PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="SUMMER20", customer_id="cust-1")

        self.summer.refresh_from_db()
        self.assertEqual(self.summer.current_total_redemptions, 0)
        self.assertFalse(PromotionRedemption.objects.exists())

    def test_detailed_calculation_includes_auto_apply(self):
        delivery = create_auto_promotion(self.tenant, kind=Promotion.KIND_FREE_DELIVERY, stackable=True)

        result = PromotionService.validate(self.tenant.pk, make_cart("30.00", delivery_fee="4.99"), code="SUMMER20")

        self.assertEqual(result.discount_preview, Decimal("6.00"))
        self.assertEqual(
            result.detailed_calculation.applied_promotion_ids,
            [str(delivery.pk), str(self.summer.pk)],
        )
        self.assertEqual(result.detailed_calculation.total_discount, Decimal("10.99"))

    def test_without_code_evaluates_auto_apply(self):
        happy_hour = create_auto_promotion(self.tenant, discount_percent=Decimal("10.00"))
        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"))

        self.assertTrue(result.is_valid)
        self.assertEqual(result.promotion_id, str(happy_hour.pk))
        self.assertEqual(result.discount_preview, Decimal("3.00"))

    def test_without_code_and_nothing_applicable(self):
        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="  ")
        self.assertFalse(result.is_valid)
        self.assertEqual(result.reason, ReasonCode.NOT_FOUND)

    def test_outside_schedule(self):
        # Wednesday noon
        now = datetime(2026, 6, 3, 12, 0, tzinfo=dt_timezone.utc)
        create_promotion(
            self.tenant, code="WEEKEND", valid_from=now - timedelta(days=1), valid_days=["saturday", "sunday"]
        )

        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="WEEKEND", now=now)

        self.assertEqual(result.reason, ReasonCode.OUTSIDE_SCHEDULE)

    def test_target_segment_uses_order_history(self):
        create_promotion(self.tenant, code="COMEBACK", target_segment=Promotion.SEGMENT_INACTIVE)
        lapsed = OrderHistory(total_orders=4, total_spent=Decimal("120.00"), days_since_last_order=45)

        accepted = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="COMEBACK", order_history=lapsed)
        rejected = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="COMEBACK")

        self.assertTrue(accepted.is_valid)
        self.assertEqual(rejected.reason, ReasonCode.SEGMENT_MISMATCH)


class PromotionRequestValidationTests(TestCase):
    """Malformed requests fail fast without touching the datastore."""

    def setUp(self):
        self.tenant = create_tenant()

    def test_missing_tenant(self):
        with patch.object(PromotionRepository, "get_tenant") as get_tenant:
            result = PromotionService.validate(None, make_cart("30.00"), code="SUMMER20")
        self.assertEqual(result.reason, ReasonCode.VALIDATION_ERROR)
        get_tenant.assert_not_called()

    def test_malformed_tenant_id(self):
        result = PromotionService.validate("restaurant-42", make_cart("30.00"), code="SUMMER20")
        self.assertEqual(result.reason, ReasonCode.VALIDATION_ERROR)

    def test_negative_amounts(self):
        result = PromotionService.validate(self.tenant.pk, make_cart("-1.00"), code="SUMMER20")
        self.assertEqual(result.reason, ReasonCode.VALIDATION_ERROR)
        self.assertIn("subtotal must be non-negative", result.details)

    @override_settings(PROMOTIONS={"MAX_CODE_LENGTH": 10})
    def test_code_too_long(self):
        result = PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="X" * 11)
        self.assertEqual(result.reason, ReasonCode.VALIDATION_ERROR)

    def test_unknown_tenant(self):
        result = PromotionService.validate(uuid.uuid4(), make_cart("30.00"), code="SUMMER20")
        self.assertEqual(result.reason, ReasonCode.VALIDATION_ERROR)

    def test_inactive_tenant(self):
        self.tenant.is_active = False
        self.tenant.save()
        result = PromotionService.recalculate(self.tenant.pk, make_cart("30.00"), [])
        self.assertEqual(result.error.reason, ReasonCode.VALIDATION_ERROR)


class PromotionListAvailableTests(TestCase):
    def setUp(self):
        self.tenant = create_tenant()
        self.now = timezone.now()

    def test_lists_only_displayable_promotions(self):
        auto = create_auto_promotion(self.tenant, name="Happy Hour")
        public = create_promotion(self.tenant, name="Public Code", code="PUBLIC", is_public=True)
        create_promotion(self.tenant, name="Hidden Code", code="HIDDEN")
        create_auto_promotion(self.tenant, name="Switched Off", is_active=False)
        create_auto_promotion(self.tenant, name="Over", valid_until=self.now - timedelta(hours=1))
        create_auto_promotion(self.tenant, name="Upcoming", valid_from=self.now + timedelta(days=1))
        create_auto_promotion(self.tenant, name="Used Up", max_total_redemptions=2, current_total_redemptions=2)
        create_auto_promotion(create_tenant("Elsewhere"), name="Other Tenant")

        result = PromotionService.list_available(self.tenant.pk, now=self.now)

        self.assertEqual({p.pk for p in result.unwrap()}, {auto.pk, public.pk})

    def test_hidden_code_still_redeemable_directly(self):
        create_promotion(self.tenant, code="HIDDEN")
        self.assertEqual(PromotionService.list_available(self.tenant.pk).unwrap(), [])
        self.assertTrue(PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="hidden").is_valid)

    def test_invalid_tenant(self):
        self.assertEqual(PromotionService.list_available("nope").error.reason, ReasonCode.VALIDATION_ERROR)

    def test_weekly_schedule_uses_restaurant_time(self):
        tokyo = create_tenant("Ramen Ya", timezone="Asia/Tokyo")
        # Wednesday 20:00 UTC is Thursday 05:00 in Tokyo
        now = datetime(2026, 6, 3, 20, 0, tzinfo=dt_timezone.utc)
        since = now - timedelta(days=1)
        thursday = create_auto_promotion(tokyo, name="Thursday", valid_from=since, valid_days=["thursday"])
        create_auto_promotion(tokyo, name="Wednesday", valid_from=since, valid_days=["wednesday"])
        breakfast = create_auto_promotion(
            tokyo, name="Breakfast", valid_from=since, valid_hours_start=time(4, 0), valid_hours_end=time(6, 0)
        )
        create_auto_promotion(
            tokyo, name="Dinner", valid_from=since, valid_hours_start=time(18, 0), valid_hours_end=time(22, 0)
        )

        result = PromotionService.list_available(tokyo.pk, now=now)

        self.assertEqual([p.pk for p in result.unwrap()], [breakfast.pk, thursday.pk])


class PromotionRecalculateTests(TestCase):
    def setUp(self):
        self.tenant = create_tenant()
        self.ten = create_promotion(self.tenant, code="TEN", discount_percent=Decimal("10.00"), stackable=True)
        self.five = create_promotion(
            self.tenant,
            code="FIVE",
            kind=Promotion.KIND_FIXED_AMOUNT,
            discount_amount=Decimal("5.00"),
            stackable=True,
        )

    def test_compounds_applied_codes(self):
        result = PromotionService.recalculate(self.tenant.pk, make_cart("100.00"), ["ten", "FIVE"]).unwrap()
        self.assertEqual(result.adjusted_subtotal, Decimal("85.00"))
        self.assertEqual(result.total_discount, Decimal("15.00"))

    def test_same_codes_same_result(self):
        cart = make_cart("100.00", delivery_fee="3.00", tax_amount="8.00")
        first = PromotionService.recalculate(self.tenant.pk, cart, ["TEN", "FIVE"]).unwrap()
        second = PromotionService.recalculate(self.tenant.pk, cart, ["five", "ten", "TEN"]).unwrap()
        self.assertEqual(first, second)

    def test_removing_a_code(self):
        result = PromotionService.recalculate(self.tenant.pk, make_cart("100.00"), ["TEN"]).unwrap()
        self.assertEqual(result.applied_promotion_ids, [str(self.ten.pk)])
        self.assertEqual(result.adjusted_subtotal, Decimal("90.00"))

    def test_unknown_code_reported(self):
        result = PromotionService.recalculate(self.tenant.pk, make_cart("100.00"), ["TEN", "GHOST"]).unwrap()
        self.assertEqual(result.total_discount, Decimal("10.00"))
        self.assertEqual([(r.code, r.reason) for r in result.rejected], [("GHOST", ReasonCode.NOT_FOUND)])

    def test_tax_after_discount_tenant(self):
        self.tenant.tax_after_discount = True
        self.tenant.save()
        result = PromotionService.recalculate(self.tenant.pk, make_cart("100.00", tax_amount="8.00"), ["TEN"]).unwrap()
        self.assertEqual(result.adjusted_tax, Decimal("7.20"))


class PromotionFinalizeTests(TestCase):
    def setUp(self):
        self.tenant = create_tenant()
        self.summer = create_promotion(self.tenant, stackable=True)
        self.delivery = create_auto_promotion(self.tenant, kind=Promotion.KIND_FREE_DELIVERY, stackable=True)
        self.cart = make_cart("30.00", delivery_fee="4.99")

    def test_records_every_applied_promotion(self):
        result = PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["SUMMER20"], customer_id="cust-1")

        finalized = result.unwrap()
        self.assertEqual(len(finalized.redemptions), 2)
        self.assertEqual(finalized.lost, [])
        self.assertEqual(finalized.calculation.total_discount, Decimal("10.99"))
        self.summer.refresh_from_db()
        self.assertEqual(self.summer.current_total_redemptions, 1)
        self.assertEqual(self.summer.total_discount_given, Decimal("6.00"))

    def test_finalize_twice_records_once(self):
        PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["SUMMER20"])
        PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["SUMMER20"])

        self.summer.refresh_from_db()
        self.assertEqual(self.summer.current_total_redemptions, 1)
        self.assertEqual(PromotionRedemption.objects.filter(order_id="order-1").count(), 2)

    def test_retry_after_taking_last_redemption_returns_same_result(self):
        create_promotion(self.tenant, code="ONCE", max_total_redemptions=1, stackable=True)

        first = PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["ONCE"]).unwrap()
        second = PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["ONCE"]).unwrap()

        self.assertEqual(len(first.redemptions), 2)
        self.assertEqual(second, first)

    def test_retry_after_customer_used_their_only_redemption_returns_same_result(self):
        create_promotion(self.tenant, code="ONCE", max_redemptions_per_customer=1, stackable=True)

        first = PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["ONCE"], customer_id="c1").unwrap()
        second = PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["ONCE"], customer_id="c1").unwrap()

        self.assertEqual(len(first.redemptions), 2)
        self.assertEqual(second, first)

    def test_customer_limit_still_applies_to_a_new_order(self):
        once = create_promotion(self.tenant, code="ONCE", max_redemptions_per_customer=1, stackable=True)
        PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["ONCE"], customer_id="c1")

        result = PromotionService.finalize(self.tenant.pk, self.cart, "order-2", ["ONCE"], customer_id="c1").unwrap()

        self.assertEqual(result.calculation.applied_promotion_ids, [str(self.delivery.pk)])
        rejected = [(r.promotion_id, r.reason) for r in result.calculation.rejected]
        self.assertIn((str(once.pk), ReasonCode.CUSTOMER_LIMIT_REACHED), rejected)

    def test_lost_race_recomputes_without_promotion(self):
        real_increment = PromotionRepository.increment_if_available

        def cap_already_taken(promotion_id, discount_amount):
            if promotion_id == self.summer.pk:
                return False
            return real_increment(promotion_id, discount_amount)

        with patch.object(PromotionRepository, "increment_if_available", side_effect=cap_already_taken):
            result = PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["SUMMER20"])

        finalized = result.unwrap()
        self.assertEqual([(r.promotion_id, r.reason) for r in finalized.lost], [(str(self.summer.pk), ReasonCode.RACE_LOST)])
        self.assertEqual(
            [(r.promotion_id, r.reason) for r in finalized.calculation.rejected],
            [(str(self.summer.pk), ReasonCode.RACE_LOST)],
        )
        self.assertEqual(finalized.calculation.applied_promotion_ids, [str(self.delivery.pk)])
        self.assertEqual(finalized.calculation.adjusted_subtotal, Decimal("30.00"))
        self.assertEqual([r.promotion_id for r in finalized.redemptions], [self.delivery.pk])
        self.assertFalse(PromotionRedemption.objects.filter(promotion=self.summer).exists())
        self.delivery.refresh_from_db()
        self.assertEqual(self.delivery.current_total_redemptions, 1)

    def test_requires_order_id(self):
        result = PromotionService.finalize(self.tenant.pk, self.cart, " ", ["SUMMER20"])
        self.assertEqual(result.error.reason, ReasonCode.VALIDATION_ERROR)

    def test_void_redemption(self):
        PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["SUMMER20"])

        result = PromotionService.void_redemption(self.tenant.pk, self.summer.pk, "order-1")

        self.assertEqual(result.unwrap().status, PromotionRedemption.STATUS_VOIDED)
        self.summer.refresh_from_db()
        self.assertEqual(self.summer.current_total_redemptions, 0)

    def test_void_other_tenants_redemption(self):
        PromotionService.finalize(self.tenant.pk, self.cart, "order-1", ["SUMMER20"])
        other = create_tenant("Noodle Bar")

        result = PromotionService.void_redemption(other.pk, self.summer.pk, "order-1")

        self.assertEqual(result.error.reason, ReasonCode.NOT_FOUND)
