"""Login log service - records every login attempt."""

from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.models.login_log import LoginLog


class LoginLogService:
    """Persist and query append-only login log entries."""

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    def write(
        self,
        db: Session,
        *,
        username: str,
        status: int,
        user_id: Optional[int] = None,
        real_name: Optional[str] = None,
        message: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginLog:
        entry = LoginLog(
            user_id=user_id,
            username=(username or "")[:255],
            real_name=real_name,
            status=status,
            message=message[:255] if message else None,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
            created_at=self.clock(),
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry

    def list(
        self,
        db: Session,
        page: int = 1,
        page_size: int = 10,
        username: Optional[str] = None,
        status: Optional[int] = None,
    ) -> Tuple[List[LoginLog], int]:
        """Newest first. Returns the requested page and the total match count."""
        query = db.query(LoginLog)
        if username:
            query = query.filter(LoginLog.username.contains(username))
        if status is not None:
            query = query.filter(LoginLog.status == status)

        total = query.count()
        items = (
            query.order_by(LoginLog.created_at.desc(), LoginLog.id.desc())
            .offset((max(page, 1) - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total
