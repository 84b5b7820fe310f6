"""
Custom exceptions module for the Xclusive API.
"""

from .custom_exceptions import (
    BaseCustomException,
    AuthenticationError,
    AuthorizationError,
    ValidationError,
    NotFoundError,
    ConflictError,
    PaymentRequiredError,
    DatabaseError,
    ExternalServiceError,
    BusinessLogicError,
    InvalidTransitionError
)

__all__ = [
    "BaseCustomException",
    "AuthenticationError",
    "AuthorizationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "PaymentRequiredError",
    "DatabaseError",
    "ExternalServiceError",
    "BusinessLogicError",
    "InvalidTransitionError"
]
