"""Security utilities - JWT signing and verification"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from app.core.clock import Clock, to_epoch, utcnow
from app.core.exceptions import (
    RefreshTokenExpiredError,
    RefreshTokenInvalidError,
    TokenExpiredError,
    TokenInvalidError,
)

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class SignedToken:
    token: str
    jti: str
    issued_at: datetime
    expires_at: datetime


class JWTManager:
    """
    Sign and verify access/refresh JWTs.

    Both token kinds share one signing key and are told apart by the ``type``
    claim. Expiry is checked against the injected clock rather than the wall
    clock so the whole token lifecycle follows a single notion of "now".
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", clock: Clock = utcnow):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, clock: Clock = utcnow) -> "JWTManager":
        return cls(settings.SECRET_KEY, settings.ALGORITHM, clock=clock)

    def create_token(self, data: Dict[str, Any], token_type: str, expires_in: int) -> SignedToken:
        """
        Create a signed JWT

        Args:
            data: Claims to encode
            token_type: ``access`` or ``refresh``
            expires_in: Lifetime in seconds

        Returns:
            SignedToken: Encoded token with its id and timestamps
        """
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=expires_in)
        jti = secrets.token_urlsafe(16)

        to_encode = data.copy()
        to_encode.update({
            "type": token_type,
            "iat": to_epoch(issued_at),
            "exp": to_epoch(expires_at),
            "jti": jti,
        })
        token = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        return SignedToken(token=token, jti=jti, issued_at=issued_at, expires_at=expires_at)

    def create_access_token(self, user_id: int, expires_in: int, **claims) -> SignedToken:
        return self.create_token({"sub": str(user_id), "id": user_id, **claims}, ACCESS, expires_in)

    def create_refresh_token(self, user_id: int, expires_in: int) -> SignedToken:
        return self.create_token({"sub": str(user_id), "id": user_id}, REFRESH, expires_in)

    def decode_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify the signature and return the claims without checking expiry.

        Returns:
            Optional[Dict]: Decoded claims or None if the token is malformed or badly signed
        """
        if not token or not isinstance(token, str):
            return None
        try:
            return jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None

    def is_expired(self, payload: Dict[str, Any]) -> bool:
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            return True
        return exp <= to_epoch(self.clock())

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        """Decode an access token, raising an unauthorized error on any problem."""
        payload = self.decode_token(token)
        if payload is None:
            raise TokenInvalidError("Invalid access token")
        if payload.get("type") != ACCESS:
            raise TokenInvalidError("Token is not an access token")
        if self.is_expired(payload):
            raise TokenExpiredError("Access token has expired")
        if _user_id(payload) is None:
            raise TokenInvalidError("Invalid token payload")
        return payload

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        payload = self.decode_token(token)
        if payload is None:
            raise RefreshTokenInvalidError("Invalid refresh token")
        if payload.get("type") != REFRESH:
            raise RefreshTokenInvalidError("Token is not a refresh token")
        if self.is_expired(payload):
            raise RefreshTokenExpiredError("Refresh token has expired")
        if _user_id(payload) is None:
            raise RefreshTokenInvalidError("Invalid token payload")
        return payload


def _user_id(payload: Dict[str, Any]) -> Optional[int]:
    raw = payload.get("id", payload.get("sub"))
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def user_id_from_claims(payload: Dict[str, Any]) -> int:
    user_id = _user_id(payload)
    if user_id is None:
        raise TokenInvalidError("Invalid token payload")
    return user_id
