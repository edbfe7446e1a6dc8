"""
Tenants app configuration for the Tablesail promotions platform.
"""

from django.apps import AppConfig


class TenantsConfig(AppConfig):
    """Configuration for the Tenants app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.tenants"
    verbose_name = "Restaurants"
