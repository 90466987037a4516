"""Custom exception classes for the application.

Every error carries a numeric business code; the HTTP status and the default
message come from the business code registry.
"""

from typing import Any, Dict, Optional

from app.core import business_codes
from app.core.business_codes import (
    AuthErrorCode,
    ResourceErrorCode,
    SystemErrorCode,
    UserErrorCode,
    ValidationErrorCode,
)


class BusinessError(Exception):
    """Base exception for all API errors"""

    default_code: int = SystemErrorCode.SYSTEM_ERROR

    def __init__(
        self,
        code: Optional[int] = None,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        sub_code: Optional[str] = None,
    ):
        self.code = int(code if code is not None else self.default_code)
        self.message = message or business_codes.get_message(self.code)
        self.details = details or {}
        self.sub_code = sub_code
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return business_codes.get_http_status(self.code)

    def __repr__(self):
        return f"<{type(self).__name__}(code={self.code}, message={self.message!r})>"


# Validation Errors
class ValidationError(BusinessError):
    """Malformed input"""
    default_code = ValidationErrorCode.VALIDATION_ERROR

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None,
                 code: Optional[int] = None):
        super().__init__(code, message, details=details)


class RateLimitExceededError(BusinessError):
    """Rate limit exceeded"""
    default_code = ValidationErrorCode.TOO_MANY_REQUESTS

    def __init__(self, message: str = "Too many requests. Please try again later."):
        super().__init__(message=message)


# Authentication Errors
class UnauthorizedError(BusinessError):
    """Missing, invalid or expired credentials"""
    default_code = AuthErrorCode.UNAUTHORIZED

    def __init__(self, message: Optional[str] = None, code: Optional[int] = None,
                 details: Optional[Dict[str, Any]] = None, sub_code: Optional[str] = None):
        super().__init__(code, message, details=details, sub_code=sub_code)


class TokenInvalidError(UnauthorizedError):
    default_code = AuthErrorCode.TOKEN_INVALID


class TokenExpiredError(UnauthorizedError):
    default_code = AuthErrorCode.TOKEN_EXPIRED


class RefreshTokenInvalidError(UnauthorizedError):
    default_code = AuthErrorCode.REFRESH_TOKEN_INVALID


class RefreshTokenExpiredError(UnauthorizedError):
    default_code = AuthErrorCode.REFRESH_TOKEN_EXPIRED


class InvalidCredentialsError(UnauthorizedError):
    """Invalid username or password"""
    default_code = AuthErrorCode.LOGIN_FAILED

    def __init__(self):
        super().__init__("Invalid username or password")


class AccountLockedError(UnauthorizedError):
    """Account is locked by an administrator or after failed login attempts"""
    default_code = AuthErrorCode.ACCOUNT_LOCKED

    def __init__(self, locked_until: Optional[str] = None):
        if locked_until:
            super().__init__(f"Account is locked until {locked_until}",
                             details={"locked_until": locked_until})
        else:
            super().__init__("Account is locked")


class AccountDisabledError(UnauthorizedError):
    """Account has been disabled"""
    default_code = UserErrorCode.USER_DISABLED

    def __init__(self):
        super().__init__("Account is disabled")


# Authorization Errors
class ForbiddenError(BusinessError):
    """Insufficient permissions"""
    default_code = AuthErrorCode.FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions", code: Optional[int] = None):
        super().__init__(code, message)


# Resource Errors
class NotFoundError(BusinessError):
    """Resource not found"""
    default_code = ResourceErrorCode.RESOURCE_NOT_FOUND

    def __init__(self, resource: str = "Resource", code: Optional[int] = None):
        super().__init__(code, f"{resource} not found")


class UserNotFoundError(NotFoundError):
    default_code = UserErrorCode.USER_NOT_FOUND

    def __init__(self):
        super().__init__("User")


class ConflictError(BusinessError):
    """Duplicate unique key"""
    default_code = ResourceErrorCode.RESOURCE_ALREADY_EXISTS

    def __init__(self, message: str = "Resource already exists", code: Optional[int] = None):
        super().__init__(code, message)
