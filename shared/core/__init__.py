"""Health endpoints and JSON logging used by the storefront service."""

from .health import ServiceHealth, HealthStatus
from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    SecurityFilter,
    StructuredFormatter,
    set_request_context,
    generate_request_id,
)

__all__ = [
    "ServiceHealth",
    "HealthStatus",
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "SecurityFilter",
    "StructuredFormatter",
    "set_request_context",
    "generate_request_id",
]
