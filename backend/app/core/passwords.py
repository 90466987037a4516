"""Password hashing - scrypt with legacy bcrypt verification"""

import logging
import os
from typing import Optional

import bcrypt
from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

logger = logging.getLogger(__name__)

SCRYPT = "scrypt"
BCRYPT = "bcrypt"

_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


class PasswordHasher:
    """
    scrypt password hasher.

    Stored format is ``hex(salt) + "." + hex(derived_key)``. Cost parameters
    are fixed per deployment and are not encoded in the stored value, so
    changing them invalidates existing hashes.
    """

    def __init__(
        self,
        cost: int = 65536,
        block_size: int = 8,
        parallelization: int = 2,
        key_length: int = 32,
        salt_bytes: int = 16,
    ):
        self.cost = cost
        self.block_size = block_size
        self.parallelization = parallelization
        self.key_length = key_length
        self.salt_bytes = salt_bytes
        # Fixed salt for timing equalization when no stored hash exists.
        self._dummy_salt = os.urandom(salt_bytes)

    @classmethod
    def from_settings(cls, settings) -> "PasswordHasher":
        return cls(
            cost=settings.SCRYPT_COST,
            block_size=settings.SCRYPT_BLOCK_SIZE,
            parallelization=settings.SCRYPT_PARALLELIZATION,
            key_length=settings.SCRYPT_KEY_LENGTH,
            salt_bytes=settings.SCRYPT_SALT_BYTES,
        )

    def _kdf(self, salt: bytes) -> Scrypt:
        return Scrypt(
            salt=salt,
            length=self.key_length,
            n=self.cost,
            r=self.block_size,
            p=self.parallelization,
        )

    def hash(self, password: str) -> str:
        """
        Hash a password with a fresh random salt

        Args:
            password: Plain text password

        Returns:
            str: ``salt.key`` in lowercase hex
        """
        salt = os.urandom(self.salt_bytes)
        key = self._kdf(salt).derive(password.encode("utf-8"))
        return f"{salt.hex()}.{key.hex()}"

    def verify(self, password: str, stored_hash: Optional[str]) -> bool:
        """
        Verify a password against a stored hash.

        Never raises: malformed or empty hashes simply fail verification.
        """
        if not stored_hash or not isinstance(stored_hash, str) or password is None:
            return False

        if stored_hash.startswith(_BCRYPT_PREFIXES):
            try:
                return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
            except ValueError:
                return False

        parts = stored_hash.split(".")
        if len(parts) != 2:
            return False
        try:
            salt = bytes.fromhex(parts[0])
            expected = bytes.fromhex(parts[1])
        except ValueError:
            return False
        if not salt or len(expected) != self.key_length:
            self.dummy_verify(password)
            return False

        try:
            # Scrypt.verify compares in constant time
            self._kdf(salt).verify(password.encode("utf-8"), expected)
            return True
        except InvalidKey:
            return False
        except (TypeError, ValueError) as exc:
            logger.warning("scrypt verification failed: %s", exc)
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend one KDF evaluation so failures cost the same as real checks."""
        self._kdf(self._dummy_salt).derive((password or "").encode("utf-8"))

    @staticmethod
    def algorithm_of(stored_hash: Optional[str]) -> Optional[str]:
        if not stored_hash:
            return None
        if stored_hash.startswith(_BCRYPT_PREFIXES):
            return BCRYPT
        return SCRYPT

    def needs_rehash(self, stored_hash: Optional[str]) -> bool:
        return self.algorithm_of(stored_hash) != SCRYPT
