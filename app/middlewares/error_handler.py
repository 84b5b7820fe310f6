"""
Global error handling for the API.

Every failure is rendered with the same envelope the routes use for success,
so clients can always read `success` and `message`:

    {"success": false, "message": ..., "data": null, "errors": ...,
     "error": {"code", "message", "user_message", "details", "request_id", "timestamp"}}
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from sqlalchemy.exc import SQLAlchemyError

from app.exceptions.custom_exceptions import BaseCustomException

logger = logging.getLogger(__name__)

USER_FRIENDLY_MESSAGES = {
    400: "Bad request. Please check your input",
    401: "Authentication required. Please log in",
    402: "Payment required to continue",
    403: "Access denied. You don't have permission",
    404: "Resource not found",
    405: "Method not allowed",
    409: "Conflict. Resource already exists",
    422: "Invalid input. Please check your data",
    429: "Too many requests. Please try again later",
    500: "Internal server error. Please try again later",
    503: "Service temporarily unavailable",
}


class ErrorResponse:
    """Standard error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        user_message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.user_message = user_message
        self.details = details or {}
        self.request_id = request_id or str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "data": None,
            "errors": self.details or self.message,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "user_message": self.user_message,
                "details": self.details,
                "request_id": self.request_id,
                "timestamp": self.timestamp,
            },
        }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


async def custom_exception_handler(request: Request, exc: BaseCustomException):
    """Handler for the application's exception taxonomy."""
    if exc.status_code >= 500:
        logger.error(f"Server error on {request.method} {request.url.path}: {exc.detail}")
    else:
        logger.warning(f"Client error on {request.method} {request.url.path}: {exc.detail}")
    error_response = ErrorResponse(
        error_code=exc.error_code,
        message=str(exc.detail),
        user_message=exc.user_message,
        details=getattr(exc, "field_errors", {}),
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=exc.status_code, content=error_response.to_dict(), headers=exc.headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handler for plain HTTPExceptions raised by FastAPI or Starlette."""
    if isinstance(exc, BaseCustomException):
        return await custom_exception_handler(request, exc)
    error_response = ErrorResponse(
        error_code=f"HTTP_{exc.status_code}",
        message=str(exc.detail),
        user_message=USER_FRIENDLY_MESSAGES.get(exc.status_code, "An error occurred"),
        request_id=_request_id(request),
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.to_dict(),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for request validation failures."""
    field_errors = {}
    for error in exc.errors():
        field_name = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_name] = error["msg"]

    error_response = ErrorResponse(
        error_code="VAL_001",
        message="Request validation failed",
        user_message="Please check your input and try again",
        details={"field_errors": field_errors},
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=error_response.to_dict())


class GlobalErrorHandler(BaseHTTPMiddleware):
    """Catch-all for errors no route or exception handler dealt with."""

    def __init__(self, app, debug: bool = False):
        super().__init__(app)
        self.debug = debug

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            return await call_next(request)
        except HTTPException as exc:
            return await http_exception_handler(request, exc)
        except SQLAlchemyError as exc:
            logger.error(f"Database error on {request.method} {request.url.path}: {exc}", exc_info=True)
            error_response = ErrorResponse(
                error_code="DB_001",
                message="Database operation failed",
                user_message="A database error occurred. Please try again",
                details={"db_error": str(exc) if self.debug else "Database error"},
                request_id=request_id,
            )
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_response.to_dict())
        except Exception as exc:
            logger.error(f"Unexpected error on {request.method} {request.url.path}: {exc}", exc_info=True)
            error_response = ErrorResponse(
                error_code="SYS_001",
                message="Internal server error",
                user_message="An unexpected error occurred. Please try again later",
                details={"error": str(exc) if self.debug else "Internal server error"},
                request_id=request_id,
            )
            return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_response.to_dict())


def register_exception_handlers(app) -> None:
    app.add_exception_handler(BaseCustomException, custom_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
