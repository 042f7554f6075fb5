"""
Gateway error taxonomy.

Every failure leaves the gateway as ``{"error": <message>}`` with a status in
{400, 404, 429, 500}.
"""

from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .logging import EventType, get_logger

logger = get_logger("chess_gateway.errors")

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."

ENVELOPE_STATUSES = frozenset({400, 404, 429, 500})


class GatewayError(Exception):
    """Base class for errors rendered as a JSON error envelope."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidRequestError(GatewayError):
    """A required parameter is missing or the upstream rejected the parameters."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(GatewayError):
    """The upstream reports the resource does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class RateLimitError(GatewayError):
    """The upstream signalled throttling."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, message: str = RATE_LIMIT_MESSAGE):
        super().__init__(message)


class ConfigurationError(GatewayError):
    """A credential the route needs is missing from process configuration."""


class UpstreamError(GatewayError):
    """Any other failure reaching or parsing the upstream response."""

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.upstream_status = upstream_status
        self.cause = cause
        super().__init__(message)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ===========================================
# Exception Handlers
# ===========================================


async def gateway_error_handler(request: Request, exc: GatewayError):
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Framework errors are folded into the gateway's status set."""
    if exc.status_code in ENVELOPE_STATUSES:
        return error_response(exc.status_code, str(exc.detail))
    # No route serves this method, which callers see as an unknown path
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return error_response(status.HTTP_404_NOT_FOUND, "Not Found")
    if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
        return error_response(status.HTTP_400_BAD_REQUEST, str(exc.detail))
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors, reported as 400."""
    logger.warning(
        f"Invalid request body: {request.method} {request.url.path}",
        event_type=EventType.VALIDATION_ERROR,
        method=request.method,
        path=request.url.path,
        metadata={"errors": str(exc.errors())},
    )
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body")


async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all handler for unhandled exceptions."""
    logger.error(
        f"Unhandled exception: {exc}",
        event_type=EventType.GATEWAY_ERROR,
        method=request.method,
        path=request.url.path,
        metadata={"error_type": type(exc).__name__},
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


def register_exception_handlers(app):
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
    return app
