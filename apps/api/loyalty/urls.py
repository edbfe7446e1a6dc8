"""
Loyalty API URLs for Tablesail
"""

from django.urls import path

from . import views

app_name = "loyalty"

urlpatterns = [
    path("earn/", views.earn_points, name="earn"),
    path("rewards/redeem/", views.redeem_reward, name="redeem_reward"),
    path("account/", views.account_summary, name="account"),
]
