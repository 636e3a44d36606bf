"""
Error handling middleware and exception handlers.

Every failure leaves the API in the same envelope:
{"error": {"code", "message", "path", "method", "details?", "request_id?"}}
with secrets scrubbed from messages.
"""

import logging
import re
import traceback
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.middleware.authentication import AuthenticationError, UserInactiveError
from core.middleware.authorization import AuthorizationError
from core.workflow import InvalidStatusTransition

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be logged
SENSITIVE_PATTERNS = [
    re.compile(r'bearer\s+[A-Za-z0-9\-_.]+', re.IGNORECASE),
    re.compile(r'password"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'api[_-]?key"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization["\s:]+[^"\s,}]+', re.IGNORECASE),
]

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "AUTHENTICATION_REQUIRED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMITED",
}


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message) if message is not None else ""
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def get_safe_error_details(exc: Exception, include_traceback: bool = False) -> dict[str, Any]:
    """Exception type and scrubbed message, plus the traceback in debug mode."""
    details = {
        "type": type(exc).__name__,
        "message": sanitize_error_message(str(exc)),
    }
    if include_traceback:
        details["traceback"] = traceback.format_exc()
    return details


def format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic validation errors into field/message/type entries."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": sanitize_error_message(error["msg"]),
            "type": error["type"],
        })
    return errors


@dataclass
class ErrorInfo:
    status_code: int
    code: str
    message: str
    details: Any = None
    headers: dict[str, str] = field(default_factory=dict)


def classify_exception(exc: Exception, debug: bool = False) -> ErrorInfo:
    """Map an exception to its HTTP status, error code and public message."""
    if isinstance(exc, StarletteHTTPException):
        return ErrorInfo(
            status_code=exc.status_code,
            code=HTTP_ERROR_CODES.get(exc.status_code, "HTTP_EXCEPTION"),
            message=sanitize_error_message(exc.detail),
            headers=dict(exc.headers or {}),
        )

    if isinstance(exc, RequestValidationError):
        return ErrorInfo(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details=format_validation_errors(exc),
        )

    if isinstance(exc, UserInactiveError):
        return ErrorInfo(status.HTTP_403_FORBIDDEN, exc.code, str(exc))

    if isinstance(exc, AuthenticationError):
        return ErrorInfo(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=exc.code,
            message=sanitize_error_message(exc) or "Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if isinstance(exc, AuthorizationError):
        return ErrorInfo(
            status_code=status.HTTP_403_FORBIDDEN,
            code=exc.code,
            message=sanitize_error_message(exc)
            or "You don't have permission to perform this action",
        )

    if isinstance(exc, InvalidStatusTransition):
        return ErrorInfo(
            status_code=status.HTTP_409_CONFLICT,
            code="INVALID_STATUS_TRANSITION",
            message=str(exc),
            details={"current": exc.current.value, "requested": exc.requested.value},
        )

    if isinstance(exc, IntegrityError):
        return ErrorInfo(
            status_code=status.HTTP_409_CONFLICT,
            code="INTEGRITY_ERROR",
            message="Database integrity constraint violated",
            details=get_safe_error_details(exc, True) if debug else None,
        )

    if isinstance(exc, OperationalError):
        return ErrorInfo(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="DATABASE_ERROR",
            message="Database service temporarily unavailable",
        )

    if isinstance(exc, SQLAlchemyError):
        return ErrorInfo(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="DATABASE_ERROR",
            message="A database error occurred",
            details=get_safe_error_details(exc, True) if debug else None,
        )

    if isinstance(exc, ValueError):
        return ErrorInfo(
            status_code=status.HTTP_400_BAD_REQUEST,
            code="INVALID_INPUT",
            message=sanitize_error_message(str(exc)) or "Invalid input provided",
        )

    if isinstance(exc, PermissionError):
        return ErrorInfo(
            status_code=status.HTTP_403_FORBIDDEN,
            code="PERMISSION_DENIED",
            message="You don't have permission to perform this action",
        )

    if isinstance(exc, TimeoutError):
        return ErrorInfo(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            code="TIMEOUT",
            message="The request timed out",
        )

    return ErrorInfo(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        details=get_safe_error_details(exc, True) if debug else None,
    )


def build_error_response(
    info: ErrorInfo,
    path: str,
    method: str,
    request_id: Optional[str] = None,
) -> JSONResponse:
    error = {
        "code": info.code,
        "message": info.message,
        "path": path,
        "method": method,
    }
    if info.details is not None:
        error["details"] = info.details
    if request_id:
        error["request_id"] = request_id
    return JSONResponse(
        status_code=info.status_code,
        content={"error": error},
        headers=info.headers or None,
    )


def _log_error(info: ErrorInfo, exc: Exception, method: str, path: str) -> None:
    if info.status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {method} {path} - {sanitize_error_message(str(exc))}",
            exc_info=True,
        )
    else:
        logger.warning(
            f"{info.code}: {method} {path} - Status: {info.status_code}, Message: {info.message}"
        )


class ErrorHandlingMiddleware:
    """
    Outermost ASGI guard. Anything the exception handlers did not turn into
    a response is converted to the standard error envelope here.
    """

    def __init__(self, app: Callable, debug: bool = False):
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
        path = scope.get("path", "unknown")
        method = scope.get("method", "unknown")
        info = classify_exception(exc, debug=self.debug)
        _log_error(info, exc, method, path)

        request_id = None
        for name, value in scope.get("headers", []):
            if name == b"x-request-id":
                request_id = value.decode()
                break

        return build_error_response(info, path, method, request_id)


def setup_error_handlers(app) -> None:
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
    """

    async def handle(request: Request, exc: Exception) -> JSONResponse:
        info = classify_exception(exc, debug=getattr(app, "debug", False))
        _log_error(info, exc, request.method, request.url.path)
        return build_error_response(
            info,
            str(request.url.path),
            request.method,
            request.headers.get("x-request-id"),
        )

    for exc_class in (
        StarletteHTTPException,
        RequestValidationError,
        AuthenticationError,
        AuthorizationError,
        InvalidStatusTransition,
        IntegrityError,
    ):
        app.add_exception_handler(exc_class, handle)
