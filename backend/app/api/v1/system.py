"""System management routes - token cleanup, login logs, user status"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.api.deps import (
    get_cleanup_service,
    get_current_admin,
    get_login_log_service,
    get_request_id,
    get_settings_dep,
    get_user_service,
    require_cleanup_access,
)
from app.core import responses
from app.core.business_codes import SystemManageErrorCode
from app.core.database import get_db
from app.config import Settings
from app.schemas.system import CleanupResult, LoginLogResponse
from app.schemas.user import UpdateUserStatusRequest, UserProfile
from app.services.auth_service import Identity
from app.services.login_log_service import LoginLogService
from app.services.token_cleanup_service import TokenCleanupService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/tokens/cleanup")
def cleanup_tokens(
    request: Request,
    caller: Optional[Identity] = Depends(require_cleanup_access),
    cleanup: TokenCleanupService = Depends(get_cleanup_service),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Purge token pairs that expired before the retention window

    Intended for an external scheduler (``X-Cleanup-Key``) or an admin.
    """
    try:
        deleted = cleanup.execute_cleanup()
    except Exception as exc:
        # Already logged by the service.
        return responses.to_response(responses.error(
            SystemManageErrorCode.CRON_JOB_FAILED,
            "Token cleanup failed",
            sub_message=str(exc) if settings.DEBUG else None,
            request_id=get_request_id(request),
        ))

    logger.info(
        "Token cleanup triggered by %s",
        caller.username if caller else "cleanup key",
    )
    result = CleanupResult(deleted_count=deleted, retention_days=cleanup.retention_days)
    return responses.to_response(responses.success(
        result.model_dump(by_alias=True), "Token cleanup completed", request_id=get_request_id(request)
    ))


@router.get("/tokens/stats")
def token_stats(
    request: Request,
    user_id: Optional[int] = Query(None, alias="userId", ge=1),
    caller: Optional[Identity] = Depends(require_cleanup_access),
    cleanup: TokenCleanupService = Depends(get_cleanup_service),
):
    """Token counts, globally or for one user"""
    stats = cleanup.get_stats(user_id=user_id)
    return responses.to_response(responses.success(stats.to_dict(), request_id=get_request_id(request)))


@router.get("/tokens/health")
def token_health(
    request: Request,
    caller: Optional[Identity] = Depends(require_cleanup_access),
    cleanup: TokenCleanupService = Depends(get_cleanup_service),
):
    return responses.to_response(responses.success(cleanup.health_check(), request_id=get_request_id(request)))


@router.get("/login-logs")
def list_login_logs(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    username: Optional[str] = Query(None, max_length=255),
    status: Optional[int] = Query(None, ge=0, le=1),
    admin: Identity = Depends(get_current_admin),
    db: Session = Depends(get_db),
    login_logs: LoginLogService = Depends(get_login_log_service),
):
    """Paginated login log, newest first"""
    items, total = login_logs.list(db, page=page, page_size=page_size, username=username, status=status)
    data = [LoginLogResponse.model_validate(item).model_dump(mode="json", by_alias=True) for item in items]
    return responses.to_response(responses.paginated(
        data, page, page_size, total, request_id=get_request_id(request)
    ))


@router.put("/users/{user_id}/status")
def update_user_status(
    user_id: int,
    body: UpdateUserStatusRequest,
    request: Request,
    admin: Identity = Depends(get_current_admin),
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """Enable, disable or lock a user. Disable and lock revoke all sessions."""
    user = users.set_status(db, user_id, body.status)
    logger.info("Admin %s set user %s status to %s", admin.username, user.username, body.status)
    profile = UserProfile.model_validate(user).model_dump(mode="json", by_alias=True)
    return responses.to_response(responses.success(profile, "User status updated",
                                                   request_id=get_request_id(request)))
