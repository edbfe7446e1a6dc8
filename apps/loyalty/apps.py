"""
Loyalty app configuration for the Tablesail promotions platform.
"""

from django.apps import AppConfig


class LoyaltyConfig(AppConfig):
    """Configuration for the Loyalty app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.loyalty"
    verbose_name = "Loyalty Program"
