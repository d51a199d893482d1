"""
Error handling middleware with security-compliant error sanitization.
Maps domain and database exceptions to structured JSON errors without leaking
sensitive data.

Denied single-resource access renders as 404 so callers cannot test for the
existence of resources outside their scope.
"""

import logging
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, OperationalError
import re

from core.middleware.authentication import AuthenticationError
from core.middleware.authorization import AccessDenied, AuthorizationError, InsufficientRole
from core.scoping import ScopeParseError, UnknownRoleError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'password["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret["\s:=]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
    re.compile(r'[\w.+-]+@[\w-]+\.[\w.-]+'),  # e-mail address
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub('[REDACTED]', sanitized)
    return sanitized


@dataclass
class ErrorInfo:
    status_code: int
    code: str
    message: str
    log_level: int = logging.WARNING
    exc_info: bool = False


def classify_exception(exc: Exception, debug: bool = False) -> ErrorInfo:
    """
    Map an exception to its HTTP status, error code and client-facing message.

    Order matters: subclasses are tested before their bases.
    """
    if isinstance(exc, AccessDenied):
        return ErrorInfo(status.HTTP_404_NOT_FOUND, "NOT_FOUND", sanitize_error_message(exc))

    if isinstance(exc, InsufficientRole):
        return ErrorInfo(status.HTTP_403_FORBIDDEN, "FORBIDDEN", sanitize_error_message(exc))

    if isinstance(exc, (ScopeParseError, UnknownRoleError)):
        return ErrorInfo(
            status.HTTP_403_FORBIDDEN,
            "SCOPE_INVALID",
            "User access scope is misconfigured",
            log_level=logging.ERROR,
        )

    if isinstance(exc, AuthorizationError):
        return ErrorInfo(status.HTTP_403_FORBIDDEN, "FORBIDDEN", "Access denied")

    if isinstance(exc, AuthenticationError):
        return ErrorInfo(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "Authentication required")

    if isinstance(exc, IntegrityError):
        return ErrorInfo(
            status.HTTP_409_CONFLICT,
            "INTEGRITY_ERROR",
            "Database integrity constraint violated",
            log_level=logging.ERROR,
            exc_info=not debug,
        )

    if isinstance(exc, OperationalError):
        return ErrorInfo(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
            log_level=logging.ERROR,
            exc_info=True,
        )

    if isinstance(exc, SQLAlchemyError):
        return ErrorInfo(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "DATABASE_ERROR",
            "A database error occurred",
            log_level=logging.ERROR,
            exc_info=not debug,
        )

    if isinstance(exc, ValueError):
        return ErrorInfo(
            status.HTTP_400_BAD_REQUEST,
            "INVALID_INPUT",
            sanitize_error_message(exc) or "Invalid input provided",
        )

    if isinstance(exc, TimeoutError):
        return ErrorInfo(
            status.HTTP_504_GATEWAY_TIMEOUT, "TIMEOUT", "The request timed out", log_level=logging.ERROR
        )

    return ErrorInfo(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred",
        log_level=logging.ERROR,
        exc_info=True,
    )


def _error_body(
    info: ErrorInfo, path: str, method: str, details: Optional[Any] = None
) -> dict[str, Any]:
    body = {
        "error": {
            "code": info.code,
            "message": info.message,
            "path": path,
            "method": method,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    return body


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


class ErrorHandlingMiddleware:
    """
    Outermost safety net: turns any exception escaping the app into a
    structured JSON error.
    """

    def __init__(self, app: Callable, debug: bool = False):
        """
        Initialize error handling middleware.

        Args:
            app: The ASGI application
            debug: Whether to include detailed error information
        """
        self.app = app
        self.debug = debug

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            response = self._handle_exception(exc, scope)
            await response(scope, receive, send)

    def _handle_exception(self, exc: Exception, scope: dict) -> Response:
        request_path = scope.get("path", "unknown")
        request_method = scope.get("method", "unknown")

        info = classify_exception(exc, self.debug)
        logger.log(
            info.log_level,
            f"{type(exc).__name__}: {request_method} {request_path} - "
            f"Status: {info.status_code}, Message: {sanitize_error_message(exc)}",
            exc_info=info.exc_info,
        )

        details = None
        if self.debug and info.status_code >= 500:
            details = {"type": type(exc).__name__, "traceback": traceback.format_exc()}

        error_response = _error_body(info, request_path, request_method, details)

        # Add request ID if available
        if "headers" in scope:
            headers = dict(scope["headers"])
            request_id = headers.get(b"x-request-id")
            if request_id:
                error_response["error"]["request_id"] = request_id.decode()

        return JSONResponse(status_code=info.status_code, content=error_response)


def setup_error_handlers(app, debug: bool = False):
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Whether database errors are logged without tracebacks
    """

    async def domain_exception_handler(request: Request, exc: Exception):
        """Handle authorization, authentication, database and input errors."""
        info = classify_exception(exc, debug)
        logger.log(
            info.log_level,
            f"{type(exc).__name__}: {request.method} {request.url.path} - "
            f"Status: {info.status_code}, Message: {sanitize_error_message(exc)}",
            exc_info=info.exc_info,
        )
        return JSONResponse(
            status_code=info.status_code,
            content=_error_body(info, str(request.url.path), request.method),
        )

    for exc_class in (
        AuthorizationError,
        AuthenticationError,
        ScopeParseError,
        UnknownRoleError,
        SQLAlchemyError,
        ValueError,
    ):
        app.add_exception_handler(exc_class, domain_exception_handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "code": "HTTP_EXCEPTION",
                    "message": sanitize_error_message(exc.detail),
                    "path": str(request.url.path),
                    "method": request.method,
                }
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "path": str(request.url.path),
                    "method": request.method,
                    "details": _format_validation_errors(exc),
                }
            },
        )
