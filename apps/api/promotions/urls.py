"""
Promotion API URLs for Tablesail
"""

from django.urls import path

from . import views

app_name = "promotions"

urlpatterns = [
    # Storefront (public)
    path("available/", views.available_promotions, name="available"),
    path("validate/", views.validate_promotion, name="validate"),
    # Cart and checkout
    path("recalculate/", views.recalculate_cart, name="recalculate"),
    path("finalize/", views.finalize_order, name="finalize"),
    path("redemptions/void/", views.void_redemption, name="void_redemption"),
]
