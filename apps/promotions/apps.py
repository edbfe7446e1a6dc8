"""
Promotions app configuration for the Tablesail promotions platform.
"""

from django.apps import AppConfig


class PromotionsConfig(AppConfig):
    """Configuration for the Promotions app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.promotions"
    verbose_name = "Promotions & Discounts"
