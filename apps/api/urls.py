# ===============================================================================
# TABLESAIL API MAIN URLS 🚀
# ===============================================================================
#
# URL Structure:
#   /api/promotions/  → Promotion validation, listing and checkout APIs
#   /api/loyalty/     → Loyalty points and rewards APIs
#

from django.urls import include, path

from .loyalty import urls as loyalty_urls
from .promotions import urls as promotion_urls

app_name = "api"

urlpatterns = [
    path("promotions/", include((promotion_urls, "promotions"))),
    path("loyalty/", include((loyalty_urls, "loyalty"))),
]
