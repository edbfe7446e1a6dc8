"""
Promotion API Serializers for Tablesail
Input validation for cart payloads and output shapes for storefront listings.
"""

from decimal import Decimal

from rest_framework import serializers

from apps.promotions.cart import CartSnapshot, LineItem
from apps.promotions.eligibility import OrderHistory
from apps.promotions.models import Promotion

MONEY_FIELD_KWARGS = {"max_digits": 12, "decimal_places": 2, "min_value": Decimal("0")}


class LineItemInputSerializer(serializers.Serializer):
    """One cart line as sent by the checkout client"""

    item_id = serializers.CharField(max_length=255)
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class OrderHistoryInputSerializer(serializers.Serializer):
    """Completed-order statistics for the customer, supplied by the ordering backend"""

    total_orders = serializers.IntegerField(min_value=0, required=False, default=0)
    total_spent = serializers.DecimalField(**MONEY_FIELD_KWARGS, required=False, default=Decimal("0.00"))
    days_since_last_order = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)


class CartInputSerializer(serializers.Serializer):
    """Cart snapshot fields shared by every promotion endpoint that prices a cart"""

    tenant_id = serializers.UUIDField()
    items = LineItemInputSerializer(many=True, required=False, default=list)
    subtotal = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    delivery_fee = serializers.DecimalField(**MONEY_FIELD_KWARGS, required=False, default=Decimal("0.00"))
    tax_amount = serializers.DecimalField(**MONEY_FIELD_KWARGS, required=False, default=Decimal("0.00"))
    customer_id = serializers.CharField(max_length=255, required=False, allow_null=True, allow_blank=True, default=None)
    order_history = OrderHistoryInputSerializer(required=False, allow_null=True, default=None)

    def to_cart(self) -> CartSnapshot:
        data = self.validated_data
        return CartSnapshot(
            items=[LineItem(**item) for item in data["items"]],
            subtotal=data["subtotal"],
            delivery_fee=data["delivery_fee"],
            tax_amount=data["tax_amount"],
        )

    def to_order_history(self) -> OrderHistory | None:
        history = self.validated_data["order_history"]
        return OrderHistory(**history) if history is not None else None


class PromotionValidateInputSerializer(CartInputSerializer):
    """Validate one code (or the auto-apply set when no code is sent)"""

    code = serializers.CharField(required=False, allow_null=True, allow_blank=True, default=None)


class RecalculateInputSerializer(CartInputSerializer):
    """Recalculate a cart for the codes the customer has applied"""

    applied_codes = serializers.ListField(child=serializers.CharField(allow_blank=True), required=False, default=list)


class FinalizeInputSerializer(RecalculateInputSerializer):
    """Record the promotions of a confirmed order"""

    order_id = serializers.CharField(max_length=255)


class VoidRedemptionInputSerializer(serializers.Serializer):
    """Release the redemption of a cancelled or refunded order"""

    tenant_id = serializers.UUIDField()
    promotion_id = serializers.UUIDField()
    order_id = serializers.CharField(max_length=255)


class PromotionListSerializer(serializers.ModelSerializer):
    """Storefront-facing promotion info"""

    kind_display = serializers.CharField(source="get_kind_display", read_only=True)

    class Meta:
        model = Promotion
        fields = [
            "id",
            "name",
            "description",
            "banner_text",
            "code",
            "kind",
            "kind_display",
            "discount_percent",
            "discount_amount",
            "buy_quantity",
            "get_quantity",
            "max_discount_amount",
            "min_order_amount",
            "min_items_quantity",
            "valid_days",
            "valid_hours_start",
            "valid_hours_end",
            "target_segment",
            "valid_from",
            "valid_until",
            "auto_apply",
            "stackable",
        ]
