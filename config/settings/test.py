"""
Test settings for the Tablesail promotions platform
Fast, isolated testing environment.
"""

from .base import *  # noqa: F403

# ===============================================================================
# TEST FLAGS
# ===============================================================================

DEBUG = False
TESTING = True
ALLOWED_HOSTS = ["testserver", "localhost"]

# ===============================================================================
# TEST DATABASE (File-backed so worker threads share it)
# ===============================================================================

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
        "TEST": {
            "NAME": str(BASE_DIR / "test_tablesail.sqlite3"),  # noqa: F405
        },
        "OPTIONS": {
            "timeout": 30,
            # Writers take the lock at BEGIN so concurrent checkouts queue instead of failing
            "transaction_mode": "IMMEDIATE",
        },
    }
}

# ===============================================================================
# TEST CACHE
# ===============================================================================

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-cache",
    }
}

SILENCED_SYSTEM_CHECKS = ["django_ratelimit.E003", "django_ratelimit.W001"]

# ===============================================================================
# PASSWORD HASHER (Fast for tests)
# ===============================================================================

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",  # Fast but insecure (test only)
]

# ===============================================================================
# LOGGING (Minimal for tests)
# ===============================================================================

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "add_request_id": {
            "()": "apps.common.logging.RequestIDFilter",
        },
    },
    "handlers": {
        "null": {
            "class": "logging.NullHandler",
        },
    },
    "loggers": {
        "apps": {
            "handlers": ["null"],
            "level": "WARNING",
            "propagate": False,
        },
    },
}

# ===============================================================================
# RATE LIMITING (Disabled in tests)
# ===============================================================================

RATELIMIT_ENABLE = False

# Disable DRF throttling in tests to prevent 429s from rapid API calls
REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []  # noqa: F405
REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {  # noqa: F405
    scope: "10000/min" for scope in REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]  # noqa: F405
}
