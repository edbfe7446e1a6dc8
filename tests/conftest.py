# ===============================================================================
# PYTEST CONFIGURATION FOR TABLESAIL
# ===============================================================================
"""
Global test configuration for the Tablesail promotions platform.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- Naming convention: test_{app}_{feature}.py (basenames must stay unique)
- Shared model builders live in tests/factories/

Test Discovery:
- Run specific app tests: pytest tests/promotions/
- Run all tests: pytest tests/
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.test")
    django.setup()
