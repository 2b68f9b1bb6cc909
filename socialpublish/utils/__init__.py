"""Utility modules for Social Publish."""

from .html import cleanup_html
from .logging import (
    ConsoleFormatter,
    JSONFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    Timer,
    get_request_id,
    redact_sensitive_data,
    request_context,
    setup_logging,
)

__all__ = [
    # HTML
    "cleanup_html",
    # Logging utilities
    "setup_logging",
    "request_context",
    "get_request_id",
    "Timer",
    "JSONFormatter",
    "ConsoleFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
