"""
Loyalty API Serializers for Tablesail
"""

from decimal import Decimal

from rest_framework import serializers


class EarnPointsInputSerializer(serializers.Serializer):
    """Credit points for a confirmed order"""

    tenant_id = serializers.UUIDField()
    customer_id = serializers.CharField(max_length=255)
    order_id = serializers.CharField(max_length=255)
    order_total = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"))


class RedeemRewardInputSerializer(serializers.Serializer):
    """Spend points on a reward"""

    tenant_id = serializers.UUIDField()
    customer_id = serializers.CharField(max_length=255)
    reward_id = serializers.UUIDField()


class AccountQuerySerializer(serializers.Serializer):
    """Query parameters for an account lookup"""

    tenant_id = serializers.UUIDField()
    customer_id = serializers.CharField(max_length=255)
