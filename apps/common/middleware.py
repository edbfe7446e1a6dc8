"""
Common middleware for the Tablesail promotions platform
"""

import logging
import uuid
from collections.abc import Callable

from django.http import HttpRequest, HttpResponse

from apps.common.logging import clear_request_id, set_request_id

logger = logging.getLogger(__name__)

# Longest inbound X-Request-ID we are willing to propagate
MAX_INBOUND_REQUEST_ID_LENGTH = 64

# ===============================================================================
# REQUEST ID MIDDLEWARE
# ===============================================================================


class RequestIDMiddleware:
    """Add unique request ID for tracing and log correlation"""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]):
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        # Reuse the load balancer's id when it is sane, otherwise mint one
        inbound = request.META.get("HTTP_X_REQUEST_ID", "")
        if inbound and len(inbound) <= MAX_INBOUND_REQUEST_ID_LENGTH and inbound.replace("-", "").isalnum():
            request_id = inbound
        else:
            request_id = str(uuid.uuid4())

        request.META["REQUEST_ID"] = request_id
        set_request_id(request_id)
        try:
            response = self.get_response(request)
        finally:
            clear_request_id()

        response["X-Request-ID"] = request_id
        return response
