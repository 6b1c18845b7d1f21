"""
Structured JSON logging for the storefront service.

Every record is emitted as one JSON object so that order workflow steps,
webhook deliveries and provider failures can be searched by request id,
order id or user id in the log backend.
"""

import json
import logging
import logging.handlers
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

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)

class StructuredFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def __init__(self, service_name: str, environment: str, version: str):
        super().__init__()
        self.service_name = service_name
        self.environment = environment
        self.version = version

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "@timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "version": self.version,
        }

        trace_context = _current_trace_context()
        if trace_context:
            log_obj["trace"] = trace_context

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        if hasattr(record, 'extra_fields'):
            log_obj["custom"] = record.extra_fields

        return json.dumps(log_obj, default=str)

def _current_trace_context() -> Optional[Dict[str, str]]:
    context = {
        "request_id": request_id_var.get(),
        "correlation_id": correlation_id_var.get(),
        "user_id": user_id_var.get(),
    }
    context = {key: value for key, value in context.items() if value}
    return context or None

class SecurityFilter(logging.Filter):
    """Mask credentials that end up in log records (provider keys, tokens)."""

    SENSITIVE_FIELDS = ('password', 'token', 'api_key', 'secret', 'authorization', 'np-api-key')
    PATTERN = re.compile(
        r"(?i)\b(" + "|".join(re.escape(f) for f in SENSITIVE_FIELDS) + r")(\s*[=:]\s*)(\S+)"
    )

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self.PATTERN.sub(r"\1\2***REDACTED***", record.msg)
        fields = getattr(record, 'extra_fields', None)
        if isinstance(fields, dict):
            record.extra_fields = {
                key: "***REDACTED***" if key.lower() in self.SENSITIVE_FIELDS else value
                for key, value in fields.items()
            }
        return True

def setup_logging(
    service_name: str,
    level: str = "INFO",
    environment: str = "development",
    version: str = "1.0.0",
    log_file: Optional[str] = None,
) -> None:
    """
    Configure the root logger for the service.

    Args:
        service_name: Name stamped on every record
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: Deployment environment (development/staging/production)
        version: Service version stamped on every record
        log_file: Optional path of a rotating log file
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = StructuredFormatter(service_name, environment, version)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(SecurityFilter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(SecurityFilter())
        root_logger.addHandler(file_handler)

    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={'extra_fields': {'service': service_name, 'level': level, 'file': bool(log_file)}},
    )

class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that copies the request context into ``extra``."""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})

        request_id = request_id_var.get()
        if request_id:
            extra['request_id'] = request_id

        user_id = user_id_var.get()
        if user_id:
            extra['user_id'] = user_id

        kwargs['extra'] = extra
        return msg, kwargs

def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})

def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> None:
    if request_id:
        request_id_var.set(request_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if user_id:
        user_id_var.set(user_id)

def generate_request_id() -> str:
    return str(uuid.uuid4())

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log every request with its duration and status code.

    The request id is taken from ``X-Request-ID`` when the caller supplies
    one and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get('X-Correlation-ID'),
        )

        logger = get_logger(__name__)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'extra_fields': {
                    'method': request.method,
                    'path': request.url.path,
                    'duration_ms': (time.perf_counter() - start_time) * 1000,
                }},
            )
            raise

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={'extra_fields': {
                'method': request.method,
                'path': request.url.path,
                'status_code': response.status_code,
                'duration_ms': (time.perf_counter() - start_time) * 1000,
                'client_host': request.client.host if request.client else None,
            }},
        )
        response.headers['X-Request-ID'] = request_id
        return response
