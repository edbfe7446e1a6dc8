"""
Promotion API Views for Tablesail
DRF views for code validation, storefront listing, cart recalculation and checkout recording.
"""

import logging

from django.conf import settings
from django.http import HttpRequest
from django_ratelimit.decorators import ratelimit
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core.responses import (
    error_response,
    invalid_input_response,
    rate_limited_response,
    upstream_error_response,
)
from apps.api.core.throttling import (
    PromotionCalculateThrottle,
    PromotionFinalizeThrottle,
    PromotionListingThrottle,
    PromotionValidateThrottle,
)
from apps.common.request_ip import get_safe_client_ip
from apps.promotions.errors import PromotionUpstreamError, ReasonCode
from apps.promotions.services import PromotionService, ServiceError

from .serializers import (
    FinalizeInputSerializer,
    PromotionListSerializer,
    PromotionValidateInputSerializer,
    RecalculateInputSerializer,
    VoidRedemptionInputSerializer,
)

logger = logging.getLogger(__name__)

_STATUS_BY_REASON = {
    ReasonCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ReasonCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ReasonCode.RACE_LOST: status.HTTP_409_CONFLICT,
    ReasonCode.UPSTREAM_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def validate_rate(group: str, request: HttpRequest) -> str:
    """Per-IP attempt budget for code validation, read per request so it can be tuned live."""
    return settings.PROMOTIONS.get("VALIDATE_RATE_LIMIT", "30/m")


def _service_error_response(error: ServiceError) -> Response:
    return error_response(
        error.reason.value,
        error.message,
        _STATUS_BY_REASON.get(error.reason, status.HTTP_400_BAD_REQUEST),
        details=list(error.details),
    )


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([PromotionValidateThrottle])
@ratelimit(key="apps.common.request_ip.ratelimit_client_ip", rate=validate_rate, method="POST", block=False)
def validate_promotion(request: Request) -> Response:
    """
    Check a promotion code against a cart and preview its discount.
    Ineligible codes are a normal answer (200, is_valid=false), not an error.
    """
    if getattr(request, "limited", False):
        logger.warning(f"🚦 [Promotions API] Validation rate limit hit from {get_safe_client_ip(request)}")
        return rate_limited_response()

    serializer = PromotionValidateInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    try:
        result = PromotionService.validate(
            tenant_id=data["tenant_id"],
            cart=serializer.to_cart(),
            code=data["code"],
            customer_id=data["customer_id"],
            order_history=serializer.to_order_history(),
        )
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.reason == ReasonCode.VALIDATION_ERROR:
        response = error_response(result.reason.value, result.error_message, status.HTTP_400_BAD_REQUEST, result.details)
        response.data["is_valid"] = False
        return response
    return Response(result.as_dict())


@api_view(["GET"])
@permission_classes([AllowAny])
@throttle_classes([PromotionListingThrottle])
def available_promotions(request: Request) -> Response:
    """
    Public endpoint for the promotions a restaurant advertises right now.
    """
    tenant_id = request.query_params.get("tenant_id")

    try:
        result = PromotionService.list_available(tenant_id)
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _service_error_response(result.error)

    promotions = PromotionListSerializer(result.unwrap(), many=True).data
    return Response({"success": True, "results": promotions, "count": len(promotions)})


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([PromotionCalculateThrottle])
def recalculate_cart(request: Request) -> Response:
    """
    Re-derive discounts and totals whenever the cart or the applied codes change.
    """
    serializer = RecalculateInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    try:
        result = PromotionService.recalculate(
            tenant_id=data["tenant_id"],
            cart=serializer.to_cart(),
            applied_codes=data["applied_codes"],
            customer_id=data["customer_id"],
            order_history=serializer.to_order_history(),
        )
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _service_error_response(result.error)
    return Response({"success": True, "calculation": result.unwrap().as_dict()})


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([PromotionFinalizeThrottle])
def finalize_order(request: Request) -> Response:
    """
    Record the promotions of a confirmed order.
    Promotions lost to a concurrent checkout are dropped and reported; totals reflect that.
    """
    serializer = FinalizeInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    logger.info(f"🧾 [Promotions API] Finalizing order {data['order_id']}")
    try:
        result = PromotionService.finalize(
            tenant_id=data["tenant_id"],
            cart=serializer.to_cart(),
            order_id=data["order_id"],
            applied_codes=data["applied_codes"],
            customer_id=data["customer_id"],
            order_history=serializer.to_order_history(),
        )
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _service_error_response(result.error)

    finalized = result.unwrap()
    return Response(
        {
            "success": True,
            "calculation": finalized.calculation.as_dict(),
            "redemption_ids": [str(redemption.pk) for redemption in finalized.redemptions],
            "lost_promotions": [lost.as_dict() for lost in finalized.lost],
        }
    )


@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([PromotionFinalizeThrottle])
def void_redemption(request: Request) -> Response:
    """
    Release a promotion redemption after the order was cancelled or refunded.
    """
    serializer = VoidRedemptionInputSerializer(data=request.data)
    if not serializer.is_valid():
        return invalid_input_response(serializer.errors)
    data = serializer.validated_data

    try:
        result = PromotionService.void_redemption(data["tenant_id"], data["promotion_id"], data["order_id"])
    except PromotionUpstreamError:
        return upstream_error_response()

    if result.is_err():
        return _service_error_response(result.error)

    redemption = result.unwrap()
    return Response({"success": True, "redemption_id": str(redemption.pk), "status": redemption.status})
