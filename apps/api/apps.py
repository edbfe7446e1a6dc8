# ===============================================================================
# TABLESAIL API APP CONFIGURATION 🛠️
# ===============================================================================

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """
    Configuration for Tablesail's public API app.

    Storefront and checkout clients reach the engine only through here:
    - Promotion validation, listing, recalculation and checkout recording
    - Loyalty points and rewards
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.api"
    label = "tablesail_api"
    verbose_name = "Tablesail API"
