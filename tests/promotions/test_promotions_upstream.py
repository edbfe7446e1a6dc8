"""
Tests for datastore failure handling: one retry, then PromotionUpstreamError.
"""

from unittest.mock import patch

from django.db import OperationalError
from django.test import TestCase, override_settings

from apps.promotions.errors import PromotionUpstreamError, ReasonCode
from apps.promotions.repository import with_datastore_retry
from apps.promotions.services import PromotionService
from tests.factories.promotion_factories import create_promotion, create_tenant, make_cart


class DatastoreRetryTests(TestCase):
    def test_transient_failure_is_retried_once(self):
        calls = []

        @with_datastore_retry
        def flaky_read():
            calls.append("attempt")
            if len(calls) == 1:
                raise OperationalError("connection reset by peer")
            return "promotions"

        self.assertEqual(flaky_read(), "promotions")
        self.assertEqual(len(calls), 2)

    def test_persistent_failure_raises_upstream_error(self):
        calls = []

        @with_datastore_retry
        def broken_read():
            calls.append("attempt")
            raise OperationalError("could not connect to server")

        with self.assertRaises(PromotionUpstreamError) as ctx:
            broken_read()

        self.assertEqual(len(calls), 2)
        self.assertIsInstance(ctx.exception.__cause__, OperationalError)
        self.assertEqual(ctx.exception.code, ReasonCode.UPSTREAM_ERROR)

    @override_settings(PROMOTIONS={"DATASTORE_RETRY_ATTEMPTS": 0})
    def test_retry_count_is_configurable(self):
        calls = []

        @with_datastore_retry
        def broken_read():
            calls.append("attempt")
            raise OperationalError("timeout")

        with self.assertRaises(PromotionUpstreamError):
            broken_read()
        self.assertEqual(len(calls), 1)


class UpstreamFailureSurfacesTests(TestCase):
    """A datastore outage is never reported as 'no promotions found'."""

    def setUp(self):
        self.tenant = create_tenant()
        create_promotion(self.tenant)

    def test_validate_raises_instead_of_not_found(self):
        with patch(
            "apps.promotions.repository.Promotion.objects.filter",
            side_effect=OperationalError("statement timeout"),
        ), self.assertRaises(PromotionUpstreamError):
            PromotionService.validate(self.tenant.pk, make_cart("30.00"), code="SUMMER20")

    def test_list_available_raises(self):
        with patch(
            "apps.promotions.repository.Promotion.objects.filter",
            side_effect=OperationalError("statement timeout"),
        ), self.assertRaises(PromotionUpstreamError):
            PromotionService.list_available(self.tenant.pk)
