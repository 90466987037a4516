"""User service - account lookup, creation, status and login bookkeeping"""

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime, timedelta
from app.core.clock import Clock, utcnow
from app.core.business_codes import UserErrorCode
from app.core.exceptions import ConflictError, UserNotFoundError, ValidationError
from app.core.passwords import SCRYPT, PasswordHasher
from app.models.user import (
    ROLE_ADMIN,
    ROLE_USER,
    STATUS_DISABLED,
    STATUS_ENABLED,
    STATUS_LOCKED,
    User,
)
from app.services.token_store import TokenStore
import logging

logger = logging.getLogger(__name__)

VALID_STATUSES = (STATUS_DISABLED, STATUS_ENABLED, STATUS_LOCKED)
VALID_ROLES = (ROLE_ADMIN, ROLE_USER)


class UserService:
    """Service for user management"""

    def __init__(
        self,
        token_store: TokenStore,
        hasher: PasswordHasher,
        clock: Clock = utcnow,
        max_failed_attempts: int = 5,
        lockout_seconds: int = 3600,
    ):
        self.token_store = token_store
        self.hasher = hasher
        self.clock = clock
        self.max_failed_attempts = max_failed_attempts
        self.lockout_seconds = lockout_seconds

    def create_user(
        self,
        db: Session,
        username: str,
        password: str,
        email: Optional[str] = None,
        real_name: Optional[str] = None,
        role: str = ROLE_USER,
        status: int = STATUS_ENABLED,
    ) -> User:
        """
        Create new user

        Args:
            db: Database session
            username: Unique login name
            password: Plain text password, stored as a scrypt hash
            email: Optional unique email, also accepted as a login identifier
            real_name: Display name
            role: ``admin`` or ``user``
            status: Initial account status

        Returns:
            Created user
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required", code=UserErrorCode.USERNAME_FORMAT_ERROR)
        if role not in VALID_ROLES:
            raise ValidationError(f"Unknown role: {role}")
        if status not in VALID_STATUSES:
            raise ValidationError(f"Unknown status: {status}", code=UserErrorCode.USER_STATUS_ERROR)
        email = email.strip().lower() if email else None

        if self.get_user_by_identifier(db, username) is not None or (
            email and self.get_user_by_identifier(db, email) is not None
        ):
            raise ConflictError("User already exists", code=UserErrorCode.USER_ALREADY_EXISTS)

        now = self.clock()
        user = User(
            username=username,
            email=email,
            real_name=real_name,
            password_hash=self.hasher.hash(password),
            password_algorithm=SCRYPT,
            password_changed_at=now,
            status=status,
            role=role,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictError("User already exists", code=UserErrorCode.USER_ALREADY_EXISTS)
        db.refresh(user)

        logger.info(f"Created user: {user.username} (role: {user.role})")
        return user

    def get_user_by_id(self, db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.get(User, user_id)

    def get_user_by_identifier(self, db: Session, identifier: str) -> Optional[User]:
        """Get user by username or email, case-insensitively"""
        value = (identifier or "").strip().lower()
        if not value:
            return None
        return (
            db.query(User)
            .filter(or_(func.lower(User.username) == value, func.lower(User.email) == value))
            .order_by(User.id)
            .first()
        )

    def set_status(self, db: Session, user_id: int, status: int) -> User:
        """
        Change account status. Disabling or locking revokes every session
        of the user.
        """
        if status not in VALID_STATUSES:
            raise ValidationError(f"Unknown status: {status}", code=UserErrorCode.USER_STATUS_ERROR)
        user = self.get_user_by_id(db, user_id)
        if user is None:
            raise UserNotFoundError()

        now = self.clock()
        user.status = status
        user.updated_at = now
        if status == STATUS_ENABLED:
            user.failed_login_attempts = 0
            user.locked_until = None
        db.commit()
        db.refresh(user)

        if status != STATUS_ENABLED:
            revoked = self.token_store.revoke_all_for_user(db, user.id)
            logger.warning(f"User {user.username} set to status {status}; revoked {revoked} session(s)")
        else:
            logger.info(f"User {user.username} enabled")
        return user

    def record_failed_attempt(self, db: Session, user: User) -> bool:
        """
        Count a wrong password. Returns True when this attempt locked the account.
        """
        now = self.clock()
        if user.locked_until and user.locked_until <= now:
            # Previous lockout has run out; start counting again.
            user.failed_login_attempts = 0
            user.locked_until = None
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
        user.updated_at = now
        locked = user.failed_login_attempts >= self.max_failed_attempts
        if locked:
            user.locked_until = now + timedelta(seconds=self.lockout_seconds)
            logger.warning(f"Account locked for user: {user.username}")
        db.commit()
        return locked

    def record_login_success(self, db: Session, user: User, client_ip: Optional[str]) -> None:
        now = self.clock()
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_time = now
        user.last_login_ip = client_ip
        user.login_count = (user.login_count or 0) + 1
        user.updated_at = now
        db.commit()

    def update_password(self, db: Session, user: User, password: str, changed_at: Optional[datetime] = None) -> None:
        """Store a fresh scrypt hash for ``password``."""
        now = changed_at or self.clock()
        user.password_hash = self.hasher.hash(password)
        user.password_algorithm = self.hasher.algorithm_of(user.password_hash)
        user.password_changed_at = now
        user.updated_at = now
        db.commit()

    def ensure_admin(self, db: Session, username: str, password: str, email: Optional[str] = None) -> User:
        """Create the bootstrap admin account if it does not exist yet."""
        existing = self.get_user_by_identifier(db, username)
        if existing is not None:
            return existing
        user = self.create_user(
            db,
            username=username,
            password=password,
            email=email,
            real_name="Administrator",
            role=ROLE_ADMIN,
        )
        logger.info(f"Bootstrap admin user created: {username}")
        return user
