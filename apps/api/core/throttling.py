# ===============================================================================
# API THROTTLING CLASSES 🚦
# ===============================================================================

from rest_framework.throttling import ScopedRateThrottle


class PromotionValidateThrottle(ScopedRateThrottle):
    """Throttling for code validation (the endpoint code guessers hit)"""

    scope = "promotion_validate"


class PromotionCalculateThrottle(ScopedRateThrottle):
    """Throttling for cart recalculation"""

    scope = "promotion_calculate"


class PromotionListingThrottle(ScopedRateThrottle):
    """Throttling for storefront promotion listing"""

    scope = "promotion_listing"


class PromotionFinalizeThrottle(ScopedRateThrottle):
    """Throttling for checkout recording and voiding"""

    scope = "promotion_finalize"


class LoyaltyWriteThrottle(ScopedRateThrottle):
    """Throttling for earning and redeeming points"""

    scope = "loyalty_write"


class LoyaltyReadThrottle(ScopedRateThrottle):
    """Throttling for account lookups"""

    scope = "loyalty_read"
