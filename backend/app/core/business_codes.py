"""Business code registry.

Business codes are five-digit integers classified by numeric band:

    10000          success
    20xxx          system errors        -> HTTP 500
    21xxx          parameter validation -> HTTP 400
    22xxx          authentication       -> HTTP 401
    25xxx          system management    (explicit statuses only)
    30xxx          user errors          -> HTTP 200 with embedded failure code
    31xxx          resource errors      -> HTTP 200 with embedded failure code
    32xxx          business errors      -> HTTP 200 with embedded failure code

An explicit per-code HTTP status always wins over the band default. The
registry is immutable data built at import time.
"""

from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Dict, Mapping

SUCCESS_CODE = 10000

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class SystemErrorCode(IntEnum):
    SYSTEM_ERROR = 20001
    DATABASE_ERROR = 20002
    CACHE_ERROR = 20003
    NETWORK_ERROR = 20004
    SERVICE_UNAVAILABLE = 20005
    REQUEST_TIMEOUT = 20006


class ValidationErrorCode(IntEnum):
    INVALID_PARAMETER = 21001
    MISSING_PARAMETER = 21002
    PARAMETER_TYPE_ERROR = 21003
    PARAMETER_FORMAT_ERROR = 21004
    PARAMETER_OUT_OF_RANGE = 21005
    PARAMETER_LENGTH_ERROR = 21006
    VALIDATION_ERROR = 21007
    TOO_MANY_REQUESTS = 21008


class AuthErrorCode(IntEnum):
    UNAUTHORIZED = 22001
    FORBIDDEN = 22002
    TOKEN_INVALID = 22003
    TOKEN_EXPIRED = 22004
    REFRESH_TOKEN_INVALID = 22005
    REFRESH_TOKEN_EXPIRED = 22006
    LOGIN_FAILED = 22007
    ACCOUNT_LOCKED = 22008
    NEED_RELOGIN = 22009


class SystemManageErrorCode(IntEnum):
    INVALID_CRON_TOKEN = 25001
    CRON_JOB_FAILED = 25002
    INSUFFICIENT_PERMISSIONS = 25003
    LOGIN_LOG_NOT_FOUND = 25004


class UserErrorCode(IntEnum):
    USER_NOT_FOUND = 30001
    USER_ALREADY_EXISTS = 30002
    USER_DISABLED = 30003
    PASSWORD_ERROR = 30004
    USERNAME_FORMAT_ERROR = 30005
    EMAIL_FORMAT_ERROR = 30006
    PHONE_FORMAT_ERROR = 30007
    PASSWORD_WEAK = 30008
    USER_STATUS_ERROR = 30009
    USER_INFO_INCOMPLETE = 30010


class ResourceErrorCode(IntEnum):
    RESOURCE_NOT_FOUND = 31001
    RESOURCE_ALREADY_EXISTS = 31002
    RESOURCE_ACCESS_DENIED = 31003
    RESOURCE_DELETED = 31004
    RESOURCE_IN_USE = 31005
    RESOURCE_QUOTA_EXCEEDED = 31006
    FILE_FORMAT_NOT_SUPPORTED = 31007
    FILE_SIZE_EXCEEDED = 31008
    RESOURCE_STATUS_ERROR = 31009


class BusinessErrorCode(IntEnum):
    BUSINESS_ERROR = 32001
    OPERATION_NOT_ALLOWED = 32002
    STATUS_INVALID = 32003
    DATA_CONFLICT = 32004
    BUSINESS_RULE_VIOLATION = 32005
    WORKFLOW_STATUS_ERROR = 32006
    DEPENDENCY_NOT_MET = 32007
    CONFIGURATION_ERROR = 32008
    EXTERNAL_SERVICE_ERROR = 32009
    DATA_INTEGRITY_ERROR = 32010


_MESSAGES: Dict[int, str] = {
    SUCCESS_CODE: "Success",
    # system
    SystemErrorCode.SYSTEM_ERROR: "Internal system error",
    SystemErrorCode.DATABASE_ERROR: "Database error",
    SystemErrorCode.CACHE_ERROR: "Cache error",
    SystemErrorCode.NETWORK_ERROR: "Network connection failed",
    SystemErrorCode.SERVICE_UNAVAILABLE: "Service temporarily unavailable",
    SystemErrorCode.REQUEST_TIMEOUT: "Request timed out",
    # validation
    ValidationErrorCode.INVALID_PARAMETER: "Invalid parameter",
    ValidationErrorCode.MISSING_PARAMETER: "Missing required parameter",
    ValidationErrorCode.PARAMETER_TYPE_ERROR: "Parameter type error",
    ValidationErrorCode.PARAMETER_FORMAT_ERROR: "Parameter format error",
    ValidationErrorCode.PARAMETER_OUT_OF_RANGE: "Parameter out of range",
    ValidationErrorCode.PARAMETER_LENGTH_ERROR: "Parameter length invalid",
    ValidationErrorCode.VALIDATION_ERROR: "Validation failed",
    ValidationErrorCode.TOO_MANY_REQUESTS: "Too many requests",
    # auth
    AuthErrorCode.UNAUTHORIZED: "Unauthorized",
    AuthErrorCode.FORBIDDEN: "Insufficient permissions",
    AuthErrorCode.TOKEN_INVALID: "Invalid access token",
    AuthErrorCode.TOKEN_EXPIRED: "Access token expired",
    AuthErrorCode.REFRESH_TOKEN_INVALID: "Invalid refresh token",
    AuthErrorCode.REFRESH_TOKEN_EXPIRED: "Refresh token expired",
    AuthErrorCode.LOGIN_FAILED: "Login failed",
    AuthErrorCode.ACCOUNT_LOCKED: "Account locked",
    AuthErrorCode.NEED_RELOGIN: "Please log in again",
    # system management
    SystemManageErrorCode.INVALID_CRON_TOKEN: "Invalid cleanup key",
    SystemManageErrorCode.CRON_JOB_FAILED: "Scheduled job failed",
    SystemManageErrorCode.INSUFFICIENT_PERMISSIONS: "Insufficient permissions",
    SystemManageErrorCode.LOGIN_LOG_NOT_FOUND: "Login log not found",
    # user
    UserErrorCode.USER_NOT_FOUND: "User not found",
    UserErrorCode.USER_ALREADY_EXISTS: "User already exists",
    UserErrorCode.USER_DISABLED: "User is disabled",
    UserErrorCode.PASSWORD_ERROR: "Incorrect password",
    UserErrorCode.USERNAME_FORMAT_ERROR: "Invalid username format",
    UserErrorCode.EMAIL_FORMAT_ERROR: "Invalid email format",
    UserErrorCode.PHONE_FORMAT_ERROR: "Invalid phone number format",
    UserErrorCode.PASSWORD_WEAK: "Password is too weak",
    UserErrorCode.USER_STATUS_ERROR: "Invalid user status",
    UserErrorCode.USER_INFO_INCOMPLETE: "User information incomplete",
    # resource
    ResourceErrorCode.RESOURCE_NOT_FOUND: "Resource not found",
    ResourceErrorCode.RESOURCE_ALREADY_EXISTS: "Resource already exists",
    ResourceErrorCode.RESOURCE_ACCESS_DENIED: "Resource access denied",
    ResourceErrorCode.RESOURCE_DELETED: "Resource has been deleted",
    ResourceErrorCode.RESOURCE_IN_USE: "Resource is in use",
    ResourceErrorCode.RESOURCE_QUOTA_EXCEEDED: "Resource quota exceeded",
    ResourceErrorCode.FILE_FORMAT_NOT_SUPPORTED: "File format not supported",
    ResourceErrorCode.FILE_SIZE_EXCEEDED: "File size exceeded",
    ResourceErrorCode.RESOURCE_STATUS_ERROR: "Invalid resource status",
    # business
    BusinessErrorCode.BUSINESS_ERROR: "Business processing failed",
    BusinessErrorCode.OPERATION_NOT_ALLOWED: "Operation not allowed",
    BusinessErrorCode.STATUS_INVALID: "Invalid status",
    BusinessErrorCode.DATA_CONFLICT: "Data conflict",
    BusinessErrorCode.BUSINESS_RULE_VIOLATION: "Business rule violated",
    BusinessErrorCode.WORKFLOW_STATUS_ERROR: "Workflow status error",
    BusinessErrorCode.DEPENDENCY_NOT_MET: "Dependency not met",
    BusinessErrorCode.CONFIGURATION_ERROR: "Configuration error",
    BusinessErrorCode.EXTERNAL_SERVICE_ERROR: "External service call failed",
    BusinessErrorCode.DATA_INTEGRITY_ERROR: "Data integrity error",
}

_HTTP_STATUS: Dict[int, int] = {
    SUCCESS_CODE: 200,
    SystemErrorCode.SYSTEM_ERROR: 500,
    SystemErrorCode.DATABASE_ERROR: 500,
    SystemErrorCode.CACHE_ERROR: 500,
    SystemErrorCode.NETWORK_ERROR: 503,
    SystemErrorCode.SERVICE_UNAVAILABLE: 503,
    SystemErrorCode.REQUEST_TIMEOUT: 408,
    ValidationErrorCode.INVALID_PARAMETER: 400,
    ValidationErrorCode.MISSING_PARAMETER: 400,
    ValidationErrorCode.PARAMETER_TYPE_ERROR: 400,
    ValidationErrorCode.PARAMETER_FORMAT_ERROR: 400,
    ValidationErrorCode.PARAMETER_OUT_OF_RANGE: 400,
    ValidationErrorCode.PARAMETER_LENGTH_ERROR: 400,
    ValidationErrorCode.VALIDATION_ERROR: 422,
    ValidationErrorCode.TOO_MANY_REQUESTS: 429,
    AuthErrorCode.UNAUTHORIZED: 401,
    AuthErrorCode.FORBIDDEN: 403,
    AuthErrorCode.TOKEN_INVALID: 401,
    AuthErrorCode.TOKEN_EXPIRED: 401,
    AuthErrorCode.REFRESH_TOKEN_INVALID: 401,
    AuthErrorCode.REFRESH_TOKEN_EXPIRED: 401,
    AuthErrorCode.LOGIN_FAILED: 401,
    AuthErrorCode.ACCOUNT_LOCKED: 403,
    AuthErrorCode.NEED_RELOGIN: 401,
    SystemManageErrorCode.INVALID_CRON_TOKEN: 401,
    SystemManageErrorCode.CRON_JOB_FAILED: 500,
    SystemManageErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    SystemManageErrorCode.LOGIN_LOG_NOT_FOUND: 404,
    ResourceErrorCode.RESOURCE_NOT_FOUND: 404,
    ResourceErrorCode.RESOURCE_ALREADY_EXISTS: 409,
    ResourceErrorCode.RESOURCE_ACCESS_DENIED: 403,
    ResourceErrorCode.RESOURCE_DELETED: 410,
    ResourceErrorCode.RESOURCE_IN_USE: 409,
    ResourceErrorCode.RESOURCE_QUOTA_EXCEEDED: 413,
    ResourceErrorCode.FILE_FORMAT_NOT_SUPPORTED: 415,
    ResourceErrorCode.FILE_SIZE_EXCEEDED: 413,
    ResourceErrorCode.RESOURCE_STATUS_ERROR: 400,
}

MESSAGES: Mapping[int, str] = MappingProxyType({int(k): v for k, v in _MESSAGES.items()})
HTTP_STATUS: Mapping[int, int] = MappingProxyType({int(k): v for k, v in _HTTP_STATUS.items()})

# (low, high, module, error type, default http status)
_BANDS = (
    (20000, 21000, "system", "System error", 500),
    (21000, 22000, "validation", "Parameter error", 400),
    (22000, 23000, "auth", "Permission error", 401),
    (30000, 31000, "user", "User error", 200),
    (31000, 32000, "resource", "Resource error", 200),
    (32000, 33000, "business", "Business error", 200),
)


@dataclass(frozen=True)
class CodeInfo:
    """Resolved view of a business code."""

    code: int
    message: str
    http_status: int
    module: str


def _band(code: int):
    for low, high, module, error_type, status in _BANDS:
        if low <= code < high:
            return module, error_type, status
    return None


def get_message(code: int) -> str:
    return MESSAGES.get(code, UNKNOWN_ERROR_MESSAGE)


def get_http_status(code: int) -> int:
    """Explicit status first, then the numeric band, else 500."""
    status = HTTP_STATUS.get(code)
    if status is not None:
        return status
    band = _band(code)
    if band is not None:
        return band[2]
    return 500


def get_module_name(code: int) -> str:
    if code == SUCCESS_CODE:
        return "success"
    if 25000 <= code < 26000:
        return "system_manage"
    band = _band(code)
    return band[0] if band else "unknown"


def get_error_type(code: int) -> str:
    band = _band(code)
    return band[1] if band else UNKNOWN_ERROR_MESSAGE


def is_success(code: int) -> bool:
    return code == SUCCESS_CODE


def is_registered(code: int) -> bool:
    return code in MESSAGES


def resolve(code: int) -> CodeInfo:
    """
    Resolve a business code to its message and HTTP status.

    Total over integers: unregistered, negative or out-of-band codes resolve
    to the generic unknown-error message and HTTP 500.
    """
    try:
        code = int(code)
    except (TypeError, ValueError, OverflowError):
        return CodeInfo(code=-1, message=UNKNOWN_ERROR_MESSAGE, http_status=500, module="unknown")
    return CodeInfo(
        code=code,
        message=get_message(code),
        http_status=get_http_status(code),
        module=get_module_name(code),
    )
