from .auth_middleware import (
    authenticate_token,
    get_current_token,
    get_current_user,
    get_optional_user,
    require_admin,
    require_creator,
)
from .error_handler import (
    GlobalErrorHandler,
    ErrorResponse,
    custom_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    register_exception_handlers,
)
from .logging_middleware import LoggingMiddleware, UserActivityLogger, setup_logging

__all__ = [
    # Auth dependencies
    "authenticate_token",
    "get_current_token",
    "get_current_user",
    "get_optional_user",
    "require_admin",
    "require_creator",

    # Error handling
    "GlobalErrorHandler",
    "ErrorResponse",
    "custom_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "register_exception_handlers",

    # Logging
    "LoggingMiddleware",
    "UserActivityLogger",
    "setup_logging",
]
