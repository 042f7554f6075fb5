"""
Logging Middleware for Chess Gateway

FastAPI middleware for request/response logging with timing, status tracking,
and metrics collection integration.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import EventType, clear_request_id, get_logger, set_request_id
from .metrics import MetricNames, get_metrics

# Metric label for requests that matched no route
UNMATCHED_ROUTE = "unmatched"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging and metrics."""

    def __init__(
        self,
        app: ASGIApp,
        logger_name: str = "chess_gateway.middleware",
        exclude_paths: Optional[list] = None,
    ):
        """
        Initialize logging middleware.

        Args:
            app: ASGI application
            logger_name: Name for the logger instance
            exclude_paths: Paths that are served without logging or metrics
        """
        super().__init__(app)
        self.logger = get_logger(logger_name)
        self.metrics = get_metrics()
        self.exclude_paths = exclude_paths or ["/health", "/metrics", "/favicon.ico"]

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:12]}"
        set_request_id(request_id)

        start_time = time.time()
        method = request.method
        path = request.url.path

        try:
            self.logger.log_request_start(
                method=method,
                path=path,
                metadata={
                    "query_params": str(request.query_params) or None,
                    "user_agent": request.headers.get("user-agent"),
                    "client_ip": self._get_client_ip(request),
                },
            )

            response = await call_next(request)

            duration_ms = (time.time() - start_time) * 1000
            route = self._route_template(request)
            status_code = response.status_code

            self.logger.log_request_end(
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
                route=route,
                metadata={"content_type": response.headers.get("content-type", "")},
            )

            labels = {"method": method, "path": route}
            self.metrics.record_timer(MetricNames.REQUEST_DURATION, duration_ms, labels=labels)
            self.metrics.increment_counter(
                MetricNames.REQUESTS_TOTAL, labels={**labels, "status": str(status_code)}
            )

            content_length = response.headers.get("content-length")
            if content_length and content_length.isdigit():
                self.metrics.record_histogram(
                    MetricNames.RESPONSE_SIZE, int(content_length), labels=labels
                )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            self.logger.error(
                f"Request processing error: {method} {path}",
                event_type=EventType.GATEWAY_ERROR,
                method=method,
                path=path,
                duration_ms=duration_ms,
                metadata={"error": str(e), "error_type": type(e).__name__},
            )
            self.metrics.increment_counter(
                MetricNames.REQUEST_ERRORS,
                labels={"method": method, "error_type": type(e).__name__},
            )
            raise

        finally:
            clear_request_id()

    def _route_template(self, request: Request) -> str:
        """Matched route template, so metrics do not fan out per identifier."""
        route = request.scope.get("route")
        return getattr(route, "path", None) or UNMATCHED_ROUTE

    def _get_client_ip(self, request: Request) -> str:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"


def add_logging_middleware(app, **kwargs):
    """Add logging middleware to FastAPI app."""
    app.add_middleware(LoggingMiddleware, **kwargs)
    return app
