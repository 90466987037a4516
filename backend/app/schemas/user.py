"""User and authentication schemas"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime


class _CamelModel(BaseModel):
    """Accept both camelCase and snake_case keys"""
    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(_CamelModel):
    """Login with username or email"""
    username: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    remember_me: bool = Field(False, alias="rememberMe")

    @field_validator("username")
    @classmethod
    def strip_username(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("username must not be blank")
        return v


class RefreshTokenRequest(_CamelModel):
    refresh_token: str = Field(..., min_length=1, alias="refreshToken")


class LogoutRequest(_CamelModel):
    everywhere: bool = False


class ChangePasswordRequest(_CamelModel):
    old_password: str = Field(..., min_length=1, max_length=128, alias="oldPassword")
    new_password: str = Field(..., min_length=6, max_length=128, alias="newPassword")


class UpdateUserStatusRequest(BaseModel):
    """0 disabled, 1 enabled, 2 locked"""
    status: int = Field(..., ge=0, le=2)


class TokenPairResponse(BaseModel):
    """Issued token pair, serialized with the camelCase keys clients expect"""
    token: str
    refresh_token: str = Field(..., serialization_alias="refreshToken")
    token_type: str = Field("Bearer", serialization_alias="tokenType")
    expires_in: int = Field(..., serialization_alias="expiresIn")
    refresh_token_expires_in: int = Field(..., serialization_alias="refreshTokenExpiresIn")
    expires_at: int = Field(..., serialization_alias="expiresAt")
    refresh_token_expires_at: int = Field(..., serialization_alias="refreshTokenExpiresAt")

    @classmethod
    def from_issued(cls, issued) -> "TokenPairResponse":
        return cls(
            token=issued.access_token,
            refresh_token=issued.refresh_token,
            token_type=issued.token_type,
            expires_in=issued.expires_in,
            refresh_token_expires_in=issued.refresh_expires_in,
            expires_at=issued.expires_at,
            refresh_token_expires_at=issued.refresh_expires_at,
        )


class UserProfile(BaseModel):
    """Current user profile; credential fields are never included"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    real_name: Optional[str] = Field(None, serialization_alias="realName")
    role: str
    status: int
    last_login_time: Optional[datetime] = Field(None, serialization_alias="lastLoginTime")
    last_login_ip: Optional[str] = Field(None, serialization_alias="lastLoginIp")
    login_count: int = Field(0, serialization_alias="loginCount")
    created_at: Optional[datetime] = Field(None, serialization_alias="createdAt")
