"""
URL configuration for the Tablesail promotions platform.
"""

from django.urls import include, path

# ===============================================================================
# MAIN URL PATTERNS
# ===============================================================================

urlpatterns = [
    # Centralized API endpoints
    path("api/", include("apps.api.urls")),
]
