"""
Tests for the loyalty API endpoints.
"""

import uuid

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from apps.loyalty.models import LoyaltyAccount
from tests.factories.promotion_factories import create_loyalty_program, create_reward, create_tenant


class LoyaltyApiTestCase(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.tenant = create_tenant()
        create_loyalty_program(self.tenant, welcome_bonus=25)

    def earn(self, order_id="order-1", order_total="120.00", customer_id="cust-1"):
        return self.client.post(
            "/api/loyalty/earn/",
            {
                "tenant_id": str(self.tenant.pk),
                "customer_id": customer_id,
                "order_id": order_id,
                "order_total": order_total,
            },
            format="json",
        )


class EarnPointsApiTests(LoyaltyApiTestCase):
    def test_earn_points(self):
        response = self.earn()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["data"]["points_earned"], 120)
        self.assertEqual(response.data["data"]["bonus_points"], 25)
        self.assertEqual(response.data["data"]["points_balance"], 145)

    def test_repeat_call_is_reported_not_recounted(self):
        self.earn()
        response = self.earn()

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data["data"]["already_recorded"])
        self.assertEqual(LoyaltyAccount.objects.get(customer_id="cust-1").points_balance, 145)

    def test_negative_total_rejected(self):
        response = self.earn(order_total="-10.00")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "VALIDATION_ERROR")

    def test_tenant_without_program(self):
        other = create_tenant("Noodle Bar")
        response = self.client.post(
            "/api/loyalty/earn/",
            {"tenant_id": str(other.pk), "customer_id": "c", "order_id": "o", "order_total": "10.00"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class RedeemRewardApiTests(LoyaltyApiTestCase):
    def redeem(self, reward):
        return self.client.post(
            "/api/loyalty/rewards/redeem/",
            {"tenant_id": str(self.tenant.pk), "customer_id": "cust-1", "reward_id": str(reward.pk)},
            format="json",
        )

    def test_redeem_reward(self):
        self.earn()
        reward = create_reward(self.tenant, points_cost=100)

        response = self.redeem(reward)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["points_used"], 100)
        self.assertEqual(response.data["data"]["remaining_points"], 45)
        self.assertIsNotNone(response.data["data"]["expires_at"])

    def test_insufficient_points_is_400(self):
        self.earn(order_total="10.00")
        reward = create_reward(self.tenant, points_cost=500)

        response = self.redeem(reward)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["error"]["code"], "INSUFFICIENT_POINTS")

    def test_unknown_reward_is_404(self):
        self.earn()
        response = self.client.post(
            "/api/loyalty/rewards/redeem/",
            {"tenant_id": str(self.tenant.pk), "customer_id": "cust-1", "reward_id": str(uuid.uuid4())},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class AccountSummaryApiTests(LoyaltyApiTestCase):
    def test_summary(self):
        self.earn()

        response = self.client.get("/api/loyalty/account/", {"tenant_id": str(self.tenant.pk), "customer_id": "cust-1"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["data"]["points_balance"], 145)
        self.assertEqual(response.data["data"]["next_tier"], "Silver")

    def test_missing_params(self):
        response = self.client.get("/api/loyalty/account/")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_unknown_customer(self):
        response = self.client.get("/api/loyalty/account/", {"tenant_id": str(self.tenant.pk), "customer_id": "ghost"})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
