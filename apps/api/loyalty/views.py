"""
Loyalty API Views for Tablesail
DRF views for earning points on orders, redeeming rewards and account lookups.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import error_response, invalid_input_response, upstream_error_response
from apps.api.core.throttling import LoyaltyReadThrottle, LoyaltyWriteThrottle
from apps.loyalty.errors import LoyaltyError
from apps.loyalty.services import LoyaltyService
from apps.promotions.errors import PromotionUpstreamError

from .serializers import AccountQuerySerializer, EarnPointsInputSerializer, RedeemRewardInputSerializer

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = {
    LoyaltyError.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    LoyaltyError.RACE_LOST: status.HTTP_409_CONFLICT,
}


def _loyalty_error_response(error: LoyaltyError) -> Response:
    return error_response(error.value, error.message, _STATUS_BY_ERROR.get(error, status.HTTP_400_BAD_REQUEST))


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([LoyaltyWriteThrottle])
def earn_points(request: Request) -> Response:
    """
    Credit loyalty points for a confirmed order. Safe to call more than once per order.
    """
    serializer = EarnPointsInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    try:
        result = LoyaltyService.earn_points(
            data["tenant_id"],
            data["customer_id"],
            data["order_id"],
            data["order_total"],
        )
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _loyalty_error_response(result.error)
    return Response({"success": True, "data": result.unwrap().as_dict()})


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([LoyaltyWriteThrottle])
def redeem_reward(request: Request) -> Response:
    """
    Spend points on a reward. The redemption stays pending for 24 hours.
    """
    serializer = RedeemRewardInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    try:
        result = LoyaltyService.redeem_reward(data["tenant_id"], data["customer_id"], data["reward_id"])
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _loyalty_error_response(result.error)
    return Response({"success": True, "data": result.unwrap().as_dict()})


@api_view(["GET"])
@permission_classes([AllowAny])
@throttle_classes([LoyaltyReadThrottle])
def account_summary(request: Request) -> Response:
    """
    Points balance, tier and progress for one customer.
    """
    serializer = AccountQuerySerializer(data=request.query_params)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    try:
        result = LoyaltyService.account_summary(data["tenant_id"], data["customer_id"])
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _loyalty_error_response(result.error)
    return Response({"success": True, "data": result.unwrap()})
