"""Login attempt log model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, SmallInteger, String

from app.core.database import Base

LOGIN_SUCCESS = 1
LOGIN_FAILURE = 0


class LoginLog(Base):
    """Append-only record of each login attempt."""

    __tablename__ = "sys_login_log"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("sys_user.id", ondelete="SET NULL"), nullable=True)
    username = Column(String(255), nullable=False, index=True)
    real_name = Column(String(100), nullable=True)
    status = Column(SmallInteger, nullable=False)
    message = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_sys_login_log_created_at", "created_at"),
    )
