"""
Structured logging for the reservations service

Every line is a single JSON object carrying the service identity and, when a
request is in flight, its request id, correlation id and acting profile id.
"""

import json
import logging
import logging.handlers
import os
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_profile_id: ContextVar[Optional[str]] = ContextVar("profile_id", default=None)

_CONTEXT_VARS = (
    ("request_id", _request_id),
    ("correlation_id", _correlation_id),
    ("profile_id", _profile_id),
)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def current_context() -> Dict[str, str]:
    """Request-scoped fields that are currently set"""
    return {name: var.get() for name, var in _CONTEXT_VARS if var.get()}


class StructuredFormatter(logging.Formatter):
    def __init__(self, service_name: str = None, version: str = None, environment: str = None):
        super().__init__()
        self.service_name = service_name or os.getenv("SERVICE_NAME", "reservations-service")
        self.version = version or os.getenv("SERVICE_VERSION", "1.0.0")
        self.environment = environment or os.getenv("ENVIRONMENT", "development")

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "@timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "version": self.version,
            "location": {
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            },
        }

        context = current_context()
        if context:
            entry["trace"] = context

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        # domain fields arrive as extra={'extra_fields': {...}}
        fields = getattr(record, "extra_fields", None)
        if fields:
            entry["custom"] = fields

        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            entry["performance"] = {"duration_ms": round(duration_ms, 3)}

        return json.dumps(entry, default=str)


class SecurityFilter(logging.Filter):
    """Masks credential values (bearer tokens, secrets) before a line is written"""

    SENSITIVE_KEYS = ("password", "token", "api_key", "secret", "authorization", "cookie", "session")
    MASK = "***REDACTED***"

    _pattern = re.compile(
        r"(?i)\b(" + "|".join(SENSITIVE_KEYS) + r")(\s*[=:]\s*)(bearer\s+)?([^\s,;]+)"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = self._pattern.sub(lambda m: m.group(1) + m.group(2) + self.MASK, message)
        if masked != message:
            record.msg, record.args = masked, None
        return True


def _handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    handler.addFilter(SecurityFilter())
    return handler


def setup_logging(
    service_name: str,
    level: str = "INFO",
    version: str = "1.0.0",
    environment: str = "development",
    log_file: Optional[str] = None,
) -> None:
    """
    Route all logging through the JSON formatter

    Args:
        service_name: reported as ``service`` on every line
        level: root level name (DEBUG, INFO, WARNING, ...)
        version: reported as ``version`` on every line
        environment: reported as ``environment`` on every line
        log_file: also write to this rotating file when given
    """
    os.environ["SERVICE_NAME"] = service_name
    formatter = StructuredFormatter(service_name, version, environment)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [_handler(logging.StreamHandler(sys.stdout), formatter)]
    if log_file:
        rotating = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS
        )
        root.addHandler(_handler(rotating, formatter))

    # uvicorn's access log duplicates RequestLoggingMiddleware
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.INFO)

    root.info(
        "Logging initialized",
        extra={"extra_fields": {"level": level, "file": log_file}},
    )


class LoggerAdapter(logging.LoggerAdapter):
    """Copies the request context onto the record as plain attributes"""

    def process(self, msg, kwargs):
        extra = kwargs.setdefault("extra", {})
        extra.update(current_context())
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    profile_id: Optional[str] = None,
) -> None:
    """Set whichever context fields are given, leaving the others untouched"""
    for var, value in ((_request_id, request_id), (_correlation_id, correlation_id), (_profile_id, profile_id)):
        if value:
            var.set(value)


def clear_request_context() -> None:
    for _, var in _CONTEXT_VARS:
        var.set(None)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One log line when a request starts and one when it ends, with its duration
    X-Request-ID (and X-Correlation-ID when sent) is echoed on the response
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        correlation_id = request.headers.get("X-Correlation-ID")

        clear_request_context()
        set_request_context(request_id=request_id, correlation_id=correlation_id)

        logger = get_logger(__name__)
        route = f"{request.method} {request.url.path}"
        fields = {"method": request.method, "path": request.url.path}
        logger.info(
            f"Request started: {route}",
            extra={"extra_fields": {**fields, "client_host": request.client.host if request.client else None}},
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {route}",
                exc_info=True,
                extra={"extra_fields": fields, "duration_ms": (time.perf_counter() - started) * 1000},
            )
            raise

        logger.info(
            f"Request completed: {route} -> {response.status_code}",
            extra={
                "extra_fields": {**fields, "status_code": response.status_code},
                "duration_ms": (time.perf_counter() - started) * 1000,
            },
        )

        response.headers["X-Request-ID"] = request_id
        if correlation_id:
            response.headers["X-Correlation-ID"] = correlation_id
        return response
