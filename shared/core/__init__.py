"""Health checks and structured logging shared by the service entrypoints."""

from .health import ServiceHealth, HealthStatus, overall_status
from .logging_config import (
    setup_logging,
    get_logger,
    RequestLoggingMiddleware,
    set_request_context,
    clear_request_context,
    generate_request_id,
    LoggerAdapter,
    StructuredFormatter,
    SecurityFilter,
)

__all__ = [
    "ServiceHealth",
    "HealthStatus",
    "overall_status",
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "set_request_context",
    "clear_request_context",
    "generate_request_id",
    "LoggerAdapter",
    "StructuredFormatter",
    "SecurityFilter",
]
