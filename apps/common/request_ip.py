"""
Secure client IP detection for the Tablesail promotions platform

Provides proxy-aware IP detection that respects the trusted proxy configuration,
so spoofed X-Forwarded-For headers cannot be used to dodge rate limits.

Usage:
    from apps.common.request_ip import get_safe_client_ip

    def my_view(request):
        client_ip = get_safe_client_ip(request)
"""

from django.conf import settings
from django.http import HttpRequest
from ipware import get_client_ip  # type: ignore[import-untyped]

DEFAULT_CLIENT_IP = "127.0.0.1"


def get_safe_client_ip(request: HttpRequest) -> str:
    """
    Get the real client IP address, respecting proxy trust configuration.

    Configuration is done via IPWARE_TRUSTED_PROXY_LIST in Django settings:
    - Dev/Local: [] (trust no proxy headers, use REMOTE_ADDR only)
    - Prod: ['10.0.'] style address prefixes of the load balancers

    Returns:
        str: The client IP address. Falls back to '127.0.0.1' if detection fails.
    """
    trusted_proxies = getattr(settings, "IPWARE_TRUSTED_PROXY_LIST", [])
    remote_addr = request.META.get("REMOTE_ADDR") or DEFAULT_CLIENT_IP

    if not trusted_proxies:
        return remote_addr

    client_ip, _is_routable = get_client_ip(request, proxy_trusted_ips=trusted_proxies)
    return client_ip or remote_addr


def ratelimit_client_ip(group: str, request: HttpRequest) -> str:
    """django-ratelimit key function: bucket requests by trusted client IP."""
    return get_safe_client_ip(request)
