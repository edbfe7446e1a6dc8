"""
Django settings for the Tablesail promotions platform - base configuration.
"""

import os
from pathlib import Path
from typing import Any

# ===============================================================================
# CORE DJANGO SETTINGS
# ===============================================================================

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Application definition
DJANGO_APPS: list[str] = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "django.contrib.staticfiles",
]

THIRD_PARTY_APPS: list[str] = [
    "rest_framework",
    "ipware",
]

LOCAL_APPS: list[str] = [
    "apps.common",
    "apps.tenants",
    "apps.promotions",
    "apps.loyalty",
    "apps.api",  # 🚀 Centralized API endpoints
]

INSTALLED_APPS: list[str] = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE: list[str] = [
    "apps.common.middleware.RequestIDMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# ===============================================================================
# DATABASE CONFIGURATION
# ===============================================================================

DATABASES: dict[str, dict[str, Any]] = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.environ.get("DB_NAME", "tablesail"),
        "USER": os.environ.get("DB_USER", "tablesail"),
        "PASSWORD": os.environ.get("DB_PASSWORD", "development_password"),
        "HOST": os.environ.get("DB_HOST", "localhost"),
        "PORT": os.environ.get("DB_PORT", "5432"),
        "CONN_MAX_AGE": 60,  # Database connection pooling
        "OPTIONS": {
            "application_name": "tablesail_promotions",
        },
    }
}

# ===============================================================================
# INTERNATIONALIZATION & LOCALIZATION
# ===============================================================================

LANGUAGE_CODE = "en"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ===============================================================================
# STATIC FILES
# ===============================================================================

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ===============================================================================
# CACHE CONFIGURATION 💾
# ===============================================================================

# Rate-limit counters live here, so every instance must share one backend.
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.db.DatabaseCache",
        "LOCATION": "django_cache_table",
        "KEY_PREFIX": "tablesail",
        "TIMEOUT": 300,  # 5 minutes default timeout
        "VERSION": 1,
    }
}

# ===============================================================================
# ADDITIONAL SECURITY SETTINGS
# ===============================================================================

SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = "DENY"
DATA_UPLOAD_MAX_MEMORY_SIZE = 1048576  # 1MB, cart payloads are small

# ===============================================================================
# DJANGO REST FRAMEWORK
# ===============================================================================

REST_FRAMEWORK = {
    # Storefront callers are anonymous; tenant scoping is done per request.
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
    "UNAUTHENTICATED_USER": None,
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "COERCE_DECIMAL_TO_STRING": True,
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "1000/hour",
        # 🔒 SECURITY: Promotion-specific throttling to prevent code guessing
        "promotion_validate": "60/min",
        "promotion_calculate": "120/min",
        "promotion_listing": "300/min",
        "promotion_finalize": "30/min",
        "loyalty_write": "30/min",
        "loyalty_read": "120/min",
    },
}

# ===============================================================================
# PROMOTIONS CONFIGURATION 🏷️
# ===============================================================================

PROMOTIONS = {
    # Extra attempts after a failed datastore call before surfacing UPSTREAM_ERROR
    "DATASTORE_RETRY_ATTEMPTS": int(os.environ.get("PROMOTIONS_DATASTORE_RETRY_ATTEMPTS", "1")),
    "MAX_CODE_LENGTH": 50,
    # Per client IP, enforced through the shared cache
    "VALIDATE_RATE_LIMIT": os.environ.get("PROMOTIONS_VALIDATE_RATE_LIMIT", "30/m"),
}

# ===============================================================================
# DEFAULT AUTO FIELD
# ===============================================================================

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ===============================================================================
# SECURITY SETTINGS (Base - override in prod.py)
# ===============================================================================

# SECRET_KEY validation for production security
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY")
if not SECRET_KEY:
    # Development fallback - never use this in production
    import warnings

    warnings.warn(
        "🚨 SECURITY WARNING: Using default SECRET_KEY. Set DJANGO_SECRET_KEY environment variable for production!",
        UserWarning,
        stacklevel=2,
    )
    SECRET_KEY = "django-insecure-dev-key-only-change-in-production-or-tests"  # noqa: S105


def validate_production_secret_key() -> None:
    """Validate SECRET_KEY meets production security requirements"""
    if SECRET_KEY and SECRET_KEY.startswith("django-insecure-"):
        raise ValueError(
            "🔥 CRITICAL SECURITY ERROR: Cannot use insecure SECRET_KEY in production! "
            "Generate a secure key: python -c 'from django.core.management.utils import get_random_secret_key; print(get_random_secret_key())'"
        )


# ===============================================================================
# SECURE IP DETECTION CONFIGURATION 🔒
# ===============================================================================

# Only these proxies may set X-Forwarded-For; the default trusts no proxy headers
IPWARE_TRUSTED_PROXY_LIST: list[str] = [
    proxy.strip() for proxy in os.environ.get("IPWARE_TRUSTED_PROXY_LIST", "").split(",") if proxy.strip()
]

# ===============================================================================
# RATE LIMITING CONFIGURATION 🔒
# ===============================================================================

# Cache backend for rate limiting
RATELIMIT_USE_CACHE = "default"

# Enable rate limiting (can be disabled in development)
RATELIMIT_ENABLE = True

# ===============================================================================
# LOGGING CONFIGURATION (overridden per environment)
# ===============================================================================

LOGGING: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "{asctime} {levelname:<8} {name} {message} [{request_id}]",
            "style": "{",
        },
    },
    "filters": {
        "add_request_id": {
            "()": "apps.common.logging.RequestIDFilter",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
            "filters": ["add_request_id"],
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "apps": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
