"""
Request-correlated logging for the Tablesail promotions platform.

- RequestIDFilter: injects the current request id into every log record
- set_request_id / get_request_id / clear_request_id: thread-local request context

Usage:
    LOGGING = {"filters": {"add_request_id": {"()": "apps.common.logging.RequestIDFilter"}}, ...}
"""

from __future__ import annotations

import logging
import threading

# Thread-local storage for request context
_request_context = threading.local()


# =============================================================================
# REQUEST CONTEXT FUNCTIONS
# =============================================================================


def set_request_id(request_id: str) -> None:
    """Set the current request ID in thread-local storage."""
    _request_context.request_id = request_id


def get_request_id() -> str | None:
    """Get the current request ID from thread-local storage."""
    return getattr(_request_context, "request_id", None)


def clear_request_id() -> None:
    """Clear the request ID from thread-local storage."""
    _request_context.request_id = None


# =============================================================================
# REQUEST ID FILTER - Structured Logging with Request Correlation
# =============================================================================


class RequestIDFilter(logging.Filter):
    """
    Add request ID to log records.

    Records emitted outside a request (management commands, tests) get "-".
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        return True
