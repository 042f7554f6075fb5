"""
Structured Logging System for Chess Gateway

Provides structured JSON logging with request IDs and typed event names so every
proxied call can be traced from the inbound request to the upstream response.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

# Context variable for tracking request ID across async operations
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EventType(Enum):
    """Event types for structured logging."""

    # Inbound request events
    REQUEST_START = "request_start"
    REQUEST_END = "request_end"

    # Gateway events
    GATEWAY_START = "gateway_start"
    GATEWAY_ERROR = "gateway_error"

    # Upstream events
    UPSTREAM_START = "upstream_start"
    UPSTREAM_END = "upstream_end"
    UPSTREAM_ERROR = "upstream_error"

    # Local rejections
    VALIDATION_ERROR = "validation_error"
    CONFIG_ERROR = "config_error"

    # Challenge flow
    CHALLENGE_CREATED = "challenge_created"


_STRUCTURED_FIELDS = (
    "event_type",
    "route",
    "duration_ms",
    "status_code",
    "method",
    "path",
    "metadata",
)


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_context.get()
        if request_id:
            log_entry["request_id"] = request_id

        for name in _STRUCTURED_FIELDS:
            if hasattr(record, name):
                log_entry[name] = getattr(record, name)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(getattr(record, "extra_fields"))

        return json.dumps(log_entry, default=str)


class SafeStreamHandler(logging.StreamHandler):
    """StreamHandler that gracefully handles closed streams during shutdown."""

    def emit(self, record):
        try:
            if hasattr(self.stream, "closed") and self.stream.closed:
                return
            super().emit(record)
        except (ValueError, OSError) as e:
            error_msg = str(e).lower()
            if "closed file" in error_msg or "bad file descriptor" in error_msg:
                return
            raise


class GatewayLogger:
    """Structured logger for Chess Gateway."""

    def __init__(self, name: str = "chess_gateway", level: LogLevel = LogLevel.INFO):
        self.name = name
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.value))

        # Remove existing handlers to avoid duplicates
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

        handler = SafeStreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def set_level(self, level: LogLevel):
        """Set the logging level."""
        self.logger.setLevel(getattr(logging, level.value))

    def _log(self, level: LogLevel, message: str, **kwargs):
        extra = {}

        if "event_type" in kwargs:
            event_type = kwargs.pop("event_type")
            extra["event_type"] = (
                event_type.value if isinstance(event_type, EventType) else event_type
            )

        for field in _STRUCTURED_FIELDS[1:]:
            if field in kwargs:
                extra[field] = kwargs.pop(field)

        if kwargs:
            extra["extra_fields"] = kwargs

        getattr(self.logger, level.value.lower())(message, extra=extra)

    def debug(self, message: str, **kwargs):
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(LogLevel.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log(LogLevel.CRITICAL, message, **kwargs)

    def log_event(self, event_type: EventType, message: str, **kwargs):
        """Log a structured event at INFO level."""
        self.info(message, event_type=event_type, **kwargs)

    def log_request_start(self, method: str, path: str, route: Optional[str] = None, **kwargs):
        """Log inbound request start."""
        self.log_event(
            EventType.REQUEST_START,
            f"{method} {path}",
            method=method,
            path=path,
            route=route,
            **kwargs,
        )

    def log_request_end(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        route: Optional[str] = None,
        **kwargs,
    ):
        """Log inbound request end."""
        self.log_event(
            EventType.REQUEST_END,
            f"{method} {path} - {status_code} ({duration_ms:.1f}ms)",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
            route=route,
            **kwargs,
        )

    def log_upstream_start(self, route: str, method: str, url: str, **kwargs):
        """Log an outbound call to the upstream API."""
        base_meta = {"target_url": url}
        extra_meta = kwargs.pop("metadata", None)
        if extra_meta:
            base_meta.update(extra_meta)

        self.log_event(
            EventType.UPSTREAM_START,
            f"Calling upstream {method} {url}",
            route=route,
            method=method,
            metadata=base_meta,
            **kwargs,
        )

    def log_upstream_end(
        self, route: str, url: str, status_code: int, duration_ms: float, **kwargs
    ):
        """Log the upstream response status and latency."""
        self.log_event(
            EventType.UPSTREAM_END,
            f"Upstream response from {url}: {status_code} ({duration_ms:.1f}ms)",
            route=route,
            status_code=status_code,
            duration_ms=duration_ms,
            metadata={"target_url": url},
            **kwargs,
        )

    def log_upstream_error(
        self,
        route: str,
        url: str,
        error: Union[str, Exception],
        status_code: Optional[int] = None,
        **kwargs,
    ):
        """Log a failed upstream call, either a transport error or an error status."""
        error_msg = str(error)
        message = f"Upstream call to {url} failed"
        if status_code is not None:
            message += f" with status {status_code}"
        if error_msg:
            message += f": {error_msg}"

        self.error(
            message,
            event_type=EventType.UPSTREAM_ERROR,
            route=route,
            status_code=status_code,
            metadata={"target_url": url, "error": error_msg},
            **kwargs,
        )

    def log_validation_error(self, route: str, message: str, **kwargs):
        """Log a request rejected before any upstream call."""
        self.warning(
            f"Rejected request for {route}: {message}",
            event_type=EventType.VALIDATION_ERROR,
            route=route,
            **kwargs,
        )

    def log_config_error(self, route: str, message: str, **kwargs):
        """Log a request that cannot be served because configuration is incomplete."""
        self.error(
            f"Configuration error for {route}: {message}",
            event_type=EventType.CONFIG_ERROR,
            route=route,
            **kwargs,
        )


# Global logger instance
logger = GatewayLogger()
_loggers: dict[str, GatewayLogger] = {"chess_gateway": logger}

# Level applied to loggers created after configure_logging runs
_configured_level: LogLevel = LogLevel.INFO


def get_logger(name: str = "chess_gateway") -> GatewayLogger:
    """Get a logger instance, shared per name."""
    if name not in _loggers:
        _loggers[name] = GatewayLogger(name, _configured_level)
    return _loggers[name]


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context. If not provided, generates a new one."""
    if request_id is None:
        request_id = f"req_{uuid.uuid4().hex[:12]}"

    request_id_context.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_context.get()


def clear_request_id():
    """Clear request ID from context."""
    request_id_context.set(None)


def configure_logging(level: LogLevel = LogLevel.INFO, enable_debug: bool = False):
    """Configure global logging settings."""
    global _configured_level
    if enable_debug:
        level = LogLevel.DEBUG

    _configured_level = level
    for instance in _loggers.values():
        instance.set_level(level)

    logger.info(
        "Logging configured",
        event_type=EventType.GATEWAY_START,
        metadata={"log_level": level.value, "debug_enabled": enable_debug},
    )
