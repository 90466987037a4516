"""API dependencies - authentication and authorization"""

import hmac
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import Settings
from app.core.business_codes import SystemManageErrorCode
from app.core.database import get_db
from app.core.exceptions import ForbiddenError, UnauthorizedError
from app.services.auth_service import AuthService, Identity
from app.services.login_log_service import LoginLogService
from app.services.rate_limiter import InMemoryRateLimiter
from app.services.token_cleanup_service import TokenCleanupService
from app.services.user_service import UserService

BEARER_PREFIX = "Bearer "
CLEANUP_KEY_HEADER = "X-Cleanup-Key"


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


def get_login_log_service(request: Request) -> LoginLogService:
    return request.app.state.login_log_service


def get_cleanup_service(request: Request) -> TokenCleanupService:
    return request.app.state.cleanup_service


def get_rate_limiter(request: Request) -> InMemoryRateLimiter:
    return request.app.state.rate_limiter


def get_client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """
    Parse an ``Authorization`` header of the exact form ``Bearer <token>``.

    The scheme is case-sensitive and separated by a single space.

    Raises:
        UnauthorizedError: If the header is missing or malformed
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise UnauthorizedError("Missing or malformed Authorization header")
    token = authorization[len(BEARER_PREFIX):]
    if not token or any(ch.isspace() for ch in token):
        raise UnauthorizedError("Missing or malformed Authorization header")
    return token


def get_bearer_token(request: Request) -> str:
    return extract_bearer_token(request.headers.get("Authorization"))


def get_current_identity(
    request: Request,
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
) -> Identity:
    """
    Resolve the bearer token to the calling identity

    Raises:
        UnauthorizedError: If the token is invalid, expired or revoked, or the
            user is no longer allowed to sign in
    """
    identity = auth.validate_access_token(db, token)
    request.state.identity = identity
    return identity


def get_current_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    """
    Require an admin identity

    Raises:
        ForbiddenError: If the caller is not an admin
    """
    if not identity.is_admin:
        raise ForbiddenError("Admin access required")
    return identity


def require_cleanup_access(
    request: Request,
    db: Session = Depends(get_db),
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings_dep),
) -> Optional[Identity]:
    """
    Allow either a matching ``X-Cleanup-Key`` header (for schedulers) or an
    admin bearer token. Returns the identity for bearer callers, None for
    key callers.
    """
    key = request.headers.get(CLEANUP_KEY_HEADER)
    if key is not None:
        expected = settings.CLEANUP_API_KEY
        if expected and hmac.compare_digest(key.encode("utf-8"), expected.encode("utf-8")):
            return None
        raise UnauthorizedError("Invalid cleanup key", code=SystemManageErrorCode.INVALID_CRON_TOKEN)

    token = extract_bearer_token(request.headers.get("Authorization"))
    identity = auth.validate_access_token(db, token)
    request.state.identity = identity
    if not identity.is_admin:
        raise ForbiddenError("Admin access required", code=SystemManageErrorCode.INSUFFICIENT_PERMISSIONS)
    return identity
