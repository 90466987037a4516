"""Database models"""

from app.models.user import User
from app.models.token import UserToken
from app.models.login_log import LoginLog

__all__ = ["User", "UserToken", "LoginLog"]
