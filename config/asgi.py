"""
ASGI config for the Tablesail promotions platform
"""

import os

from django.core.asgi import get_asgi_application

# Set default Django settings module
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.prod")

application = get_asgi_application()
