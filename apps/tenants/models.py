"""
Tenant model for the Tablesail promotions platform.
Each restaurant on the platform is one tenant; every promotion and loyalty
record is scoped to exactly one of them.
"""

from __future__ import annotations

import uuid
from typing import ClassVar
from zoneinfo import ZoneInfo, available_timezones

from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


def validate_timezone_name(value: str) -> None:
    if value not in available_timezones():
        raise ValidationError(_("Unknown time zone: %(value)s"), params={"value": value})


class Tenant(models.Model):
    """
    Root entity for multi-tenancy.

    Subdomain structure: {slug}.tablesail.app
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255, help_text=_("Display name (e.g., Joe's Pizza)"))
    slug = models.SlugField(unique=True, help_text=_("URL-safe identifier used in the storefront subdomain"))

    # Pricing policy
    tax_after_discount = models.BooleanField(
        default=False,
        help_text=_("Compute tax on the discounted subtotal instead of the original one"),
    )
    currency = models.CharField(max_length=3, default="USD", help_text=_("ISO 4217 currency code"))
    timezone = models.CharField(
        max_length=64,
        default="UTC",
        validators=[validate_timezone_name],
        help_text=_("IANA time zone used for day and hour promotion schedules"),
    )

    # Status
    is_active = models.BooleanField(default=True, help_text=_("Inactive tenants cannot run promotions"))

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "tenants"
        verbose_name = _("Tenant")
        verbose_name_plural = _("Tenants")
        ordering: ClassVar[tuple[str, ...]] = ("name",)
        indexes: ClassVar[tuple[models.Index, ...]] = (models.Index(fields=["is_active"]),)

    def __str__(self) -> str:
        return self.name

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
