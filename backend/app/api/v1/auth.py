"""Authentication routes"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from typing import Optional

from app.core import responses
from app.core.database import get_db
from app.config import Settings
from app.schemas.user import (
    LoginRequest,
    RefreshTokenRequest,
    LogoutRequest,
    ChangePasswordRequest,
    TokenPairResponse,
    UserProfile,
)
from app.services.auth_service import AuthService, Identity
from app.services.rate_limiter import InMemoryRateLimiter
from app.api.deps import (
    get_auth_service,
    get_bearer_token,
    get_client_ip,
    get_current_identity,
    get_rate_limiter,
    get_request_id,
    get_settings_dep,
)

router = APIRouter()


def _token_payload(issued) -> dict:
    return TokenPairResponse.from_issued(issued).model_dump(by_alias=True)


@router.post("/login")
def login(
    credentials: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    limiter: InMemoryRateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Login endpoint - authenticate by username or email and issue a token pair

    Args:
        credentials: Username (or email), password and remember-me flag
        db: Database session

    Returns:
        Envelope with the token pair
    """
    client_ip = get_client_ip(request)
    user_key = credentials.username.lower()
    limiter.hit(f"login:min:{client_ip}:{user_key}", settings.LOGIN_RATE_LIMIT_PER_MINUTE, 60,
                "Too many login attempts. Please wait a minute.")
    limiter.hit(f"login:hour:{client_ip}:{user_key}", settings.LOGIN_RATE_LIMIT_PER_HOUR, 3600,
                "Too many login attempts. Please try again later.")

    issued = auth.login(
        db,
        credentials.username,
        credentials.password,
        client_ip=client_ip,
        user_agent=request.headers.get("User-Agent"),
        remember_me=credentials.remember_me,
    )
    return responses.to_response(responses.success(
        _token_payload(issued), "Login successful", request_id=get_request_id(request)
    ))


@router.post("/logout")
def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Logout endpoint - revoke the current session, or all sessions with
    ``everywhere``. Works with an already expired or revoked access token.
    """
    everywhere = bool(body and body.everywhere)
    revoked = auth.logout(db, token, everywhere=everywhere)
    return responses.to_response(responses.success(
        {"revokedCount": revoked, "everywhere": everywhere},
        "Logged out successfully",
        request_id=get_request_id(request),
    ))


@router.post("/refresh")
def refresh_token(
    req: RefreshTokenRequest,
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    limiter: InMemoryRateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_settings_dep),
):
    """Rotate a refresh token into a new token pair"""
    client_ip = get_client_ip(request)
    limiter.hit(f"refresh:min:{client_ip}", settings.REFRESH_RATE_LIMIT_PER_MINUTE, 60,
                "Too many refresh attempts. Slow down.")

    issued = auth.refresh(
        db,
        req.refresh_token,
        client_ip=client_ip,
        user_agent=request.headers.get("User-Agent"),
    )
    return responses.to_response(responses.success(
        _token_payload(issued), "Token refreshed", request_id=get_request_id(request)
    ))


@router.get("/getCurrentUser")
def get_current_user_info(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Profile of the authenticated user"""
    user = auth.get_current_user(db, identity)
    profile = UserProfile.model_validate(user).model_dump(mode="json", by_alias=True)
    return responses.to_response(responses.success(profile, request_id=get_request_id(request)))


@router.post("/changePassword")
def change_password(
    body: ChangePasswordRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
):
    """Change password; every session of the user is revoked"""
    revoked = auth.change_password(db, identity.user_id, body.old_password, body.new_password)
    return responses.to_response(responses.success(
        {"revokedCount": revoked},
        "Password changed. Please log in again.",
        request_id=get_request_id(request),
    ))
