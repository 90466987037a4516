"""
Authentication service.

Session lifecycle per token pair::

    no session -> ACTIVE (access valid) -> ACCESS_EXPIRED (refresh valid) -> TERMINATED

Login mints a pair, refresh consumes one pair and mints the next, logout,
password change and account disable revoke pairs. Every bearer request goes
through ``validate_access_token``, which checks the signature, the stored
pair and the user's current status.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.core.clock import Clock, isoformat, to_epoch, utcnow
from app.core.exceptions import (
    AccountDisabledError,
    AccountLockedError,
    InvalidCredentialsError,
    RefreshTokenInvalidError,
    TokenInvalidError,
    UserNotFoundError,
    ValidationError,
)
from app.core.business_codes import UserErrorCode
from app.core.passwords import PasswordHasher
from app.core.security import JWTManager, SignedToken, user_id_from_claims
from app.models.login_log import LOGIN_FAILURE, LOGIN_SUCCESS
from app.models.user import STATUS_DISABLED, User
from app.services.login_log_service import LoginLogService
from app.services.token_store import NewTokenPair, TokenStore
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_in: int
    expires_at: int
    refresh_expires_at: int
    token_pair_id: int
    user_id: int
    token_type: str = "Bearer"


@dataclass
class Identity:
    user_id: int
    username: str
    role: str
    token_pair_id: int

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class AuthService:
    """Login, access-token validation, refresh rotation, logout and password change."""

    def __init__(
        self,
        token_store: TokenStore,
        hasher: PasswordHasher,
        jwt: JWTManager,
        users: UserService,
        login_logs: LoginLogService,
        settings,
        clock: Clock = utcnow,
    ):
        self.token_store = token_store
        self.hasher = hasher
        self.jwt = jwt
        self.users = users
        self.login_logs = login_logs
        self.settings = settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def _mint(self, user: User, remember_me: bool, client_ip, user_agent):
        access_ttl, refresh_ttl = self.settings.token_lifetimes(remember_me)
        access = self.jwt.create_access_token(
            user.id, access_ttl, username=user.username, role=user.role
        )
        refresh = self.jwt.create_refresh_token(user.id, refresh_ttl)
        pair = NewTokenPair(
            user_id=user.id,
            access_token=access.token,
            refresh_token=refresh.token,
            access_token_expires_at=access.expires_at,
            refresh_token_expires_at=refresh.expires_at,
            client_ip=client_ip,
            user_agent=user_agent,
        )
        return pair, access, refresh

    @staticmethod
    def _issued(pair: NewTokenPair, token_pair_id: int,
                access: SignedToken, refresh: SignedToken) -> IssuedTokens:
        return IssuedTokens(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=int((access.expires_at - access.issued_at).total_seconds()),
            refresh_expires_in=int((refresh.expires_at - refresh.issued_at).total_seconds()),
            expires_at=to_epoch(pair.access_token_expires_at),
            refresh_expires_at=to_epoch(pair.refresh_token_expires_at),
            token_pair_id=token_pair_id,
            user_id=pair.user_id,
        )

    def _check_status(self, user: User) -> None:
        if user.status == STATUS_DISABLED:
            raise AccountDisabledError()
        if user.is_locked(self.clock()):
            locked_until = isoformat(user.locked_until) if user.locked_until else None
            raise AccountLockedError(locked_until)

    def _check_session_user(self, user: Optional[User], error_cls) -> None:
        """Existing sessions of a disabled or locked user are plain invalid tokens."""
        if user is None:
            raise error_cls("User no longer exists")
        try:
            self._check_status(user)
        except (AccountDisabledError, AccountLockedError) as exc:
            raise error_cls(exc.message, sub_code=type(exc).__name__)

    def _log_attempt(self, db: Session, identifier: str, user: Optional[User], status: int,
                     message: str, client_ip, user_agent) -> None:
        self.login_logs.write(
            db,
            username=user.username if user else identifier,
            user_id=user.id if user else None,
            real_name=user.real_name if user else None,
            status=status,
            message=message,
            ip_address=client_ip,
            user_agent=user_agent,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def login(
        self,
        db: Session,
        identifier: str,
        password: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        remember_me: bool = False,
    ) -> IssuedTokens:
        """
        Authenticate by username or email and issue a new token pair.

        Unknown identifiers and wrong passwords both raise
        ``InvalidCredentialsError`` after one KDF evaluation.

        Raises:
            InvalidCredentialsError: Unknown user or wrong password
            AccountDisabledError: User is disabled
            AccountLockedError: User is locked or temporarily locked out
        """
        identifier = (identifier or "").strip()
        user = self.users.get_user_by_identifier(db, identifier)

        if user is None:
            self.hasher.dummy_verify(password)
            self._log_attempt(db, identifier, None, LOGIN_FAILURE, "Invalid username or password",
                              client_ip, user_agent)
            logger.info("Login failed for unknown identifier from %s", client_ip)
            raise InvalidCredentialsError()

        try:
            self._check_status(user)
        except (AccountDisabledError, AccountLockedError) as exc:
            self.hasher.dummy_verify(password)
            self._log_attempt(db, identifier, user, LOGIN_FAILURE, exc.message, client_ip, user_agent)
            logger.info("Login rejected for %s: %s", user.username, exc.message)
            raise

        if not self.hasher.verify(password, user.password_hash):
            locked = self.users.record_failed_attempt(db, user)
            self._log_attempt(db, identifier, user, LOGIN_FAILURE, "Invalid username or password",
                              client_ip, user_agent)
            logger.info("Login failed for %s from %s", user.username, client_ip)
            if locked:
                raise AccountLockedError(isoformat(user.locked_until))
            raise InvalidCredentialsError()

        if self.hasher.needs_rehash(user.password_hash):
            self.users.update_password(db, user, password, changed_at=user.password_changed_at)
            logger.info("Upgraded password hash for %s", user.username)

        self.users.record_login_success(db, user, client_ip)
        pair, access, refresh = self._mint(user, remember_me, client_ip, user_agent)
        record = self.token_store.create(db, pair)
        self._log_attempt(db, identifier, user, LOGIN_SUCCESS, "Login successful", client_ip, user_agent)
        logger.info("User %s logged in from %s", user.username, client_ip)
        return self._issued(pair, record.id, access, refresh)

    def validate_access_token(self, db: Session, access_token: str) -> Identity:
        """
        Resolve a bearer access token to an identity.

        Raises:
            TokenInvalidError / TokenExpiredError: bad, expired or revoked token,
                or a user that is gone, disabled or locked
        """
        payload = self.jwt.verify_access_token(access_token)
        user_id = user_id_from_claims(payload)

        record = self.token_store.find_active_by_access_token(db, access_token)
        if record is None or record.user_id != user_id:
            raise TokenInvalidError("Token has been revoked or is no longer valid")

        user = self.users.get_user_by_id(db, user_id)
        self._check_session_user(user, TokenInvalidError)

        return Identity(
            user_id=user.id,
            username=user.username,
            role=user.role,
            token_pair_id=record.id,
        )

    def refresh(
        self,
        db: Session,
        refresh_token: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> IssuedTokens:
        """
        Rotate a refresh token into a brand-new pair.

        The presented pair is consumed. Presenting a refresh token whose pair
        was already rotated revokes every session of the user. A pair revoked
        by logout, password change or an admin is only rejected.
        """
        payload = self.jwt.verify_refresh_token(refresh_token)
        user_id = user_id_from_claims(payload)

        record = self.token_store.find_by_refresh_token(db, refresh_token)
        if record is None or record.user_id != user_id:
            raise RefreshTokenInvalidError("Refresh token not recognized")

        if record.is_revoked:
            if record.replaced_by_id is not None:
                self._revoke_on_reuse(db, user_id, record.id)
                raise RefreshTokenInvalidError("Refresh token has already been used")
            raise RefreshTokenInvalidError("Refresh token has been revoked")
        if not record.is_refresh_active(self.clock()):
            raise RefreshTokenInvalidError("Refresh token is no longer valid")

        user = self.users.get_user_by_id(db, user_id)
        self._check_session_user(user, RefreshTokenInvalidError)

        # Remember-me pairs keep their longer lifetimes across rotation.
        remember_me = self._is_remember_me(record)
        pair, access, refresh = self._mint(
            user, remember_me, client_ip or record.client_ip, user_agent or record.user_agent
        )
        new_record = self.token_store.rotate(db, record.id, pair)
        if new_record is None:
            db.refresh(record)
            if record.replaced_by_id is None:
                raise RefreshTokenInvalidError("Refresh token has been revoked")
            self._revoke_on_reuse(db, user_id, record.id)
            raise RefreshTokenInvalidError("Refresh token has already been used")

        logger.info("Rotated token pair %s -> %s for user %s", record.id, new_record.id, user.username)
        return self._issued(pair, new_record.id, access, refresh)

    def _is_remember_me(self, record) -> bool:
        default_refresh = self.settings.token_lifetimes(False)[1]
        lifetime = (record.refresh_token_expires_at - record.created_at).total_seconds()
        return lifetime > default_refresh

    def _revoke_on_reuse(self, db: Session, user_id: int, token_pair_id: int) -> None:
        revoked = self.token_store.revoke_all_for_user(db, user_id)
        logger.warning(
            "Refresh token reuse detected on pair %s; revoked %s session(s) for user %s",
            token_pair_id,
            revoked,
            user_id,
        )

    def logout(self, db: Session, access_token: str, everywhere: bool = False) -> int:
        """
        Revoke the pair behind ``access_token``, or every pair of its user.

        Single-pair logout is idempotent: an already revoked or expired token
        still logs out. ``everywhere`` needs a token whose pair is still active.

        Returns:
            int: Number of pairs revoked by this call
        """
        payload = self.jwt.decode_token(access_token)
        if payload is None:
            raise TokenInvalidError("Invalid access token")
        user_id = user_id_from_claims(payload)

        if everywhere:
            record = self.token_store.find_active_by_access_token(db, access_token)
            if record is None or record.user_id != user_id:
                raise TokenInvalidError("Token has been revoked or is no longer valid")
            count = self.token_store.revoke_all_for_user(db, user_id)
            logger.info("User %s logged out everywhere (%s session(s))", user_id, count)
            return count

        record = self.token_store.find_by_access_token(db, access_token)
        if record is None or record.user_id != user_id:
            return 0
        was_active = not record.is_revoked
        self.token_store.revoke(db, record.id)
        logger.info("User %s logged out (pair %s)", user_id, record.id)
        return 1 if was_active else 0

    def change_password(self, db: Session, user_id: int, old_password: str, new_password: str) -> int:
        """
        Replace the user's password and revoke all of their sessions.

        Returns:
            int: Number of sessions revoked
        """
        user = self.users.get_user_by_id(db, user_id)
        if user is None:
            raise UserNotFoundError()
        if not self.hasher.verify(old_password, user.password_hash):
            raise ValidationError("Old password is incorrect", code=UserErrorCode.PASSWORD_ERROR)
        if old_password == new_password:
            raise ValidationError("New password must differ from the old password",
                                  code=UserErrorCode.PASSWORD_WEAK)

        self.users.update_password(db, user, new_password)
        revoked = self.token_store.revoke_all_for_user(db, user.id)
        logger.info("Password changed for %s; revoked %s session(s)", user.username, revoked)
        return revoked

    def get_current_user(self, db: Session, identity: Identity) -> User:
        user = self.users.get_user_by_id(db, identity.user_id)
        if user is None:
            raise UserNotFoundError()
        return user
