"""Pydantic schemas for API validation"""

from app.schemas.user import (
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    ChangePasswordRequest,
    UpdateUserStatusRequest,
    TokenPairResponse,
    UserProfile,
)
from app.schemas.system import LoginLogResponse, CleanupResult
from app.schemas.response import Pagination, ResponseEnvelope, HealthResponse

__all__ = [
    "LoginRequest", "RefreshTokenRequest", "LogoutRequest", "ChangePasswordRequest",
    "UpdateUserStatusRequest", "TokenPairResponse", "UserProfile",
    "LoginLogResponse", "CleanupResult",
    "Pagination", "ResponseEnvelope", "HealthResponse",
]
