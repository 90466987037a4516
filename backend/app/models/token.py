"""Issued token pair persistence model."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.core.database import Base


class UserToken(Base):
    """One issued access/refresh token pair (a login session)."""

    __tablename__ = "sys_user_token"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("sys_user.id", ondelete="CASCADE"), nullable=False)
    access_token = Column(String(1024), unique=True, nullable=False)
    refresh_token = Column(String(1024), unique=True, nullable=False)
    access_token_expires_at = Column(DateTime, nullable=False)
    refresh_token_expires_at = Column(DateTime, nullable=False)
    token_type = Column(String(20), default="Bearer", nullable=False)
    client_ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    replaced_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="tokens")

    __table_args__ = (
        Index("idx_sys_user_token_user_revoked", "user_id", "is_revoked"),
        Index("idx_sys_user_token_refresh_expires", "refresh_token_expires_at"),
        CheckConstraint(
            "access_token_expires_at < refresh_token_expires_at",
            name="chk_access_before_refresh",
        ),
        CheckConstraint("is_revoked = false OR revoked_at IS NOT NULL", name="chk_revoked_at_set"),
    )

    def __repr__(self):
        return f"<UserToken(id={self.id}, user_id={self.user_id}, revoked={self.is_revoked})>"

    def is_refresh_active(self, now) -> bool:
        return not self.is_revoked and self.refresh_token_expires_at > now
