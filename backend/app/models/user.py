"""User model with credential fields"""

from sqlalchemy import Column, DateTime, Index, Integer, SmallInteger, String
from sqlalchemy.orm import relationship

from app.core.clock import utcnow
from app.core.database import Base

STATUS_DISABLED = 0
STATUS_ENABLED = 1
STATUS_LOCKED = 2

ROLE_ADMIN = "admin"
ROLE_USER = "user"


class User(Base):
    """User model for authentication and authorization"""

    __tablename__ = "sys_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    real_name = Column(String(100), nullable=True)

    # Credential - never serialized to clients
    password_hash = Column(String(255), nullable=False)
    password_algorithm = Column(String(20), default="scrypt", nullable=False)
    password_changed_at = Column(DateTime, nullable=True)

    status = Column(SmallInteger, default=STATUS_ENABLED, nullable=False)
    role = Column(String(20), default=ROLE_USER, nullable=False)

    last_login_time = Column(DateTime, nullable=True)
    last_login_ip = Column(String(64), nullable=True)
    login_count = Column(Integer, default=0, nullable=False)
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    tokens = relationship("UserToken", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_sys_user_username", "username"),
        Index("idx_sys_user_status", "status"),
    )

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', status={self.status})>"

    def is_locked(self, now) -> bool:
        if self.status == STATUS_LOCKED:
            return True
        return bool(self.locked_until and self.locked_until > now)
