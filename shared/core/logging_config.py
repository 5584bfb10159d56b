"""
Structured logging configuration for the storefront service.

Every record is emitted as a single JSON object so that payment and order
references logged by the reconciliation handlers can be searched when an
operator has to reconcile an order by hand.
"""

import json
import logging
import os
import re
import sys
import time
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

_CONTEXT_VARS = {
    'request_id': request_id_var,
    'correlation_id': correlation_id_var,
    'user_id': user_id_var,
}

# Keys lifted out of extra_fields into "refs" so one search finds every
# line about an order or a gateway payment
REFERENCE_KEYS = ('order_id', 'gateway_order_id', 'payment_id', 'store_id', 'invoice_id')


def _request_context() -> Dict[str, str]:
    return {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get()}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, trace, refs, custom fields, error."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": os.getenv('SERVICE_NAME', 'unknown-service'),
            "environment": os.getenv('ENVIRONMENT', 'development'),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        trace = _request_context()
        if trace:
            entry["trace"] = trace

        custom = getattr(record, 'extra_fields', None)
        if isinstance(custom, dict):
            refs = {key: custom[key] for key in REFERENCE_KEYS if custom.get(key)}
            if refs:
                entry["refs"] = refs
            entry["custom"] = custom

        duration_ms = getattr(record, 'duration_ms', None)
        if duration_ms is not None:
            entry["duration_ms"] = round(duration_ms, 2)

        if record.exc_info:
            exc_type, exc, tb = record.exc_info
            entry["error"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "stacktrace": traceback.format_exception(exc_type, exc, tb),
            }

        return json.dumps(entry, default=str)


class SecurityFilter(logging.Filter):
    """Redact secret-looking values from messages and custom fields.

    Covers ``key=value`` / ``key: value`` pairs in the message text and
    matching keys inside ``extra_fields``.
    """

    SENSITIVE_FIELDS = (
        'password', 'token', 'api_key', 'secret', 'signature',
        'authorization', 'cookie', 'session'
    )
    REDACTED = "***REDACTED***"
    _pattern = re.compile(
        r"(?i)\b([\w-]*(?:%s)[\w-]*)(\s*[=:]\s*)(\"[^\"]*\"|'[^']*'|[^\s,;}]+)"
        % "|".join(SENSITIVE_FIELDS)
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self._pattern.sub(lambda m: f"{m.group(1)}{m.group(2)}{self.REDACTED}", message)
        if redacted != message:
            record.msg = redacted
            record.args = None

        extra_fields = getattr(record, 'extra_fields', None)
        if isinstance(extra_fields, dict):
            record.extra_fields = self._redact_dict(extra_fields)
        return True

    def _redact_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        cleaned = {}
        for key, value in data.items():
            if any(field in str(key).lower() for field in self.SENSITIVE_FIELDS):
                cleaned[key] = self.REDACTED
            elif isinstance(value, dict):
                cleaned[key] = self._redact_dict(value)
            else:
                cleaned[key] = value
        return cleaned


def setup_logging(service_name: str, level: str = "INFO") -> None:
    """Route every logger through one JSON stdout handler.

    Safe to call more than once; each call replaces the root handlers.
    """
    os.environ['SERVICE_NAME'] = service_name

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.addFilter(SecurityFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = [handler]

    for noisy in ('uvicorn.access', 'sqlalchemy.engine', 'httpx', 'httpcore'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class LoggerAdapter(logging.LoggerAdapter):
    """Copies the current request context onto each record."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**_request_context(), **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    """Set any of the given context values for the rest of the current task."""
    for name, value in (('request_id', request_id), ('correlation_id', correlation_id), ('user_id', user_id)):
        if value:
            _CONTEXT_VARS[name].set(value)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per request with status and duration, and echoes the
    request id back as ``X-Request-ID``. Probe paths log at DEBUG.
    """

    QUIET_PATHS = ('/health', '/metrics')

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        tokens = [
            request_id_var.set(request_id),
            correlation_id_var.set(request.headers.get('X-Correlation-ID')),
            user_id_var.set(None),
        ]
        path = request.url.path
        log = _request_logger.debug if path.startswith(self.QUIET_PATHS) else _request_logger.info
        fields = {
            'method': request.method,
            'path': path,
            'client_host': request.client.host if request.client else None,
        }
        start_time = time.perf_counter()

        try:
            try:
                response = await call_next(request)
            except Exception:
                _request_logger.error(
                    f"{request.method} {path} raised",
                    exc_info=True,
                    extra={'extra_fields': fields, 'duration_ms': (time.perf_counter() - start_time) * 1000}
                )
                raise

            fields['status_code'] = response.status_code
            log(
                f"{request.method} {path} -> {response.status_code}",
                extra={'extra_fields': fields, 'duration_ms': (time.perf_counter() - start_time) * 1000}
            )
            response.headers['X-Request-ID'] = request_id
            return response
        finally:
            for var, token in zip((request_id_var, correlation_id_var, user_id_var), tokens):
                var.reset(token)


_request_logger = get_logger('storefront.requests')
