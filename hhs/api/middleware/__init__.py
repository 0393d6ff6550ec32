"""
API middleware module.
"""
from hhs.api.middleware.error_handler import (
    AppException,
    NotFoundException,
    UnauthorizedException,
    AuthenticationRequiredException,
    InvalidCredentialException,
    IdentityNotFoundException,
    ForbiddenException,
    BadRequestException,
    ConflictException,
    ValidationException,
    InvalidTransitionException,
    app_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    unhandled_exception_handler,
)

__all__ = [
    "AppException",
    "NotFoundException",
    "UnauthorizedException",
    "AuthenticationRequiredException",
    "InvalidCredentialException",
    "IdentityNotFoundException",
    "ForbiddenException",
    "BadRequestException",
    "ConflictException",
    "ValidationException",
    "InvalidTransitionException",
    "app_exception_handler",
    "validation_exception_handler",
    "http_exception_handler",
    "unhandled_exception_handler",
]
