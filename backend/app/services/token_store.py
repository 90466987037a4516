"""Token pair persistence: issue, look up, revoke, rotate, purge."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import and_, case, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import Clock, utcnow
from app.core.exceptions import ConflictError, ValidationError
from app.models.token import UserToken

logger = logging.getLogger(__name__)


@dataclass
class NewTokenPair:
    user_id: int
    access_token: str
    refresh_token: str
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class TokenStats:
    total: int
    active: int
    expired: int
    revoked: int
    refresh_expired: int = 0


class TokenStore:
    """
    CRUD over issued token pairs.

    Expired or revoked pairs are invisible to the ``find_active_*`` lookups
    but stay in the table until ``purge_expired`` removes them.
    """

    def __init__(self, clock: Clock = utcnow):
        self.clock = clock

    @staticmethod
    def _build(pair: NewTokenPair, now: datetime) -> UserToken:
        if pair.access_token_expires_at >= pair.refresh_token_expires_at:
            raise ValidationError("Access token must expire before its refresh token")
        return UserToken(
            user_id=pair.user_id,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            access_token_expires_at=pair.access_token_expires_at,
            refresh_token_expires_at=pair.refresh_token_expires_at,
            token_type="Bearer",
            client_ip=pair.client_ip,
            user_agent=pair.user_agent[:512] if pair.user_agent else None,
            is_revoked=False,
            created_at=now,
            updated_at=now,
        )

    def create(self, db: Session, pair: NewTokenPair) -> UserToken:
        """Insert a new pair; ``ConflictError`` on token-string collision."""
        record = self._build(pair, self.clock())
        db.add(record)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.error("Token pair insert collided for user %s: %s", pair.user_id, exc.orig)
            raise ConflictError("Token already exists")
        db.refresh(record)
        return record

    def get(self, db: Session, token_id: int) -> Optional[UserToken]:
        return db.get(UserToken, token_id)

    def find_active_by_access_token(self, db: Session, access_token: str) -> Optional[UserToken]:
        now = self.clock()
        return (
            db.query(UserToken)
            .filter(
                UserToken.access_token == access_token,
                UserToken.is_revoked == False,  # noqa: E712
                UserToken.access_token_expires_at > now,
            )
            .first()
        )

    def find_active_by_refresh_token(self, db: Session, refresh_token: str) -> Optional[UserToken]:
        now = self.clock()
        return (
            db.query(UserToken)
            .filter(
                UserToken.refresh_token == refresh_token,
                UserToken.is_revoked == False,  # noqa: E712
                UserToken.refresh_token_expires_at > now,
            )
            .first()
        )

    def find_by_refresh_token(self, db: Session, refresh_token: str) -> Optional[UserToken]:
        """Raw lookup ignoring state, for reuse detection."""
        return db.query(UserToken).filter(UserToken.refresh_token == refresh_token).first()

    def find_by_access_token(self, db: Session, access_token: str) -> Optional[UserToken]:
        return db.query(UserToken).filter(UserToken.access_token == access_token).first()

    def list_active_for_user(self, db: Session, user_id: int) -> List[UserToken]:
        now = self.clock()
        return (
            db.query(UserToken)
            .filter(
                UserToken.user_id == user_id,
                UserToken.is_revoked == False,  # noqa: E712
                UserToken.access_token_expires_at > now,
            )
            .order_by(UserToken.created_at.desc())
            .all()
        )

    def revoke(self, db: Session, token_id: int) -> bool:
        """
        Revoke one pair. Idempotent: a second call keeps the first ``revoked_at``.

        Returns:
            bool: True if the pair exists (revoked now or before)
        """
        now = self.clock()
        result = db.execute(
            update(UserToken)
            .where(UserToken.id == token_id, UserToken.is_revoked == False)  # noqa: E712
            .values(is_revoked=True, revoked_at=now, updated_at=now)
        )
        db.commit()
        if result.rowcount:
            logger.info("Revoked token pair %s", token_id)
            return True
        return db.get(UserToken, token_id) is not None

    def revoke_by_access_token(self, db: Session, access_token: str) -> bool:
        record = self.find_by_access_token(db, access_token)
        if record is None:
            return False
        return self.revoke(db, record.id)

    def revoke_all_for_user(self, db: Session, user_id: int) -> int:
        """Revoke every not-yet-revoked pair of a user; returns how many changed."""
        now = self.clock()
        result = db.execute(
            update(UserToken)
            .where(UserToken.user_id == user_id, UserToken.is_revoked == False)  # noqa: E712
            .values(is_revoked=True, revoked_at=now, updated_at=now)
        )
        db.commit()
        if result.rowcount:
            logger.info("Revoked %s token pair(s) for user %s", result.rowcount, user_id)
        return result.rowcount or 0

    def rotate(self, db: Session, old_id: int, pair: NewTokenPair) -> Optional[UserToken]:
        """
        Consume ``old_id`` and insert ``pair`` in one transaction.

        The consume step is a conditional update, so when two refreshes race
        on the same pair exactly one sees a changed row. The loser gets None
        and nothing is inserted.
        """
        now = self.clock()
        try:
            result = db.execute(
                update(UserToken)
                .where(
                    UserToken.id == old_id,
                    UserToken.is_revoked == False,  # noqa: E712
                    UserToken.refresh_token_expires_at > now,
                )
                .values(is_revoked=True, revoked_at=now, updated_at=now)
            )
            if result.rowcount != 1:
                db.rollback()
                return None

            record = self._build(pair, now)
            db.add(record)
            db.flush()
            db.execute(
                update(UserToken).where(UserToken.id == old_id).values(replaced_by_id=record.id)
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.error("Token rotation collided for pair %s: %s", old_id, exc.orig)
            raise ConflictError("Token already exists")
        except Exception:
            db.rollback()
            raise
        db.refresh(record)
        return record

    def purge_expired(self, db: Session, retention_days: int = 0) -> int:
        """
        Physically delete pairs whose access and refresh expiries are both
        older than ``now - retention_days``.
        """
        cutoff = self.clock() - timedelta(days=max(retention_days, 0))
        deleted = (
            db.query(UserToken)
            .filter(
                UserToken.access_token_expires_at < cutoff,
                UserToken.refresh_token_expires_at < cutoff,
            )
            .delete(synchronize_session=False)
        )
        db.commit()
        return deleted or 0

    def stats(self, db: Session, user_id: Optional[int] = None) -> TokenStats:
        """
        Count tokens globally or for one user.

        ``active``: usable for authentication. ``expired``: not revoked, access
        token past expiry. ``revoked``: revoked regardless of expiry.
        """
        now = self.clock()
        not_revoked = UserToken.is_revoked == False  # noqa: E712
        query = db.query(
            func.count(UserToken.id),
            func.sum(case((and_(not_revoked, UserToken.access_token_expires_at > now), 1), else_=0)),
            func.sum(case((and_(not_revoked, UserToken.access_token_expires_at <= now), 1), else_=0)),
            func.sum(case((UserToken.is_revoked == True, 1), else_=0)),  # noqa: E712
            func.sum(case((UserToken.refresh_token_expires_at <= now, 1), else_=0)),
        )
        if user_id is not None:
            query = query.filter(UserToken.user_id == user_id)
        total, active, expired, revoked, refresh_expired = query.one()
        return TokenStats(
            total=int(total or 0),
            active=int(active or 0),
            expired=int(expired or 0),
            revoked=int(revoked or 0),
            refresh_expired=int(refresh_expired or 0),
        )

    def count(self, db: Session) -> int:
        return db.query(func.count(UserToken.id)).scalar() or 0
