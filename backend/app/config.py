"""Application configuration management"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, List
from urllib.parse import quote_plus

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode

# Base directory: backend/
_BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    APP_NAME: str = "Yishan API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database (PostgreSQL)
    DATABASE_URL: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "yishan_db"
    POSTGRES_USER: str = "yishan"
    POSTGRES_PASSWORD: str = "yishan"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # JWT
    SECRET_KEY: str = "dev-secret-key-change-in-production-use-openssl-rand-hex-32"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 900
    REFRESH_TOKEN_EXPIRE_SECONDS: int = 604800
    ACCESS_TOKEN_REMEMBER_ME_EXPIRE_SECONDS: int = 2592000
    REFRESH_TOKEN_REMEMBER_ME_EXPIRE_SECONDS: int = 7776000

    # Password hashing (scrypt)
    SCRYPT_COST: int = 65536
    SCRYPT_BLOCK_SIZE: int = 8
    SCRYPT_PARALLELIZATION: int = 2
    SCRYPT_KEY_LENGTH: int = 32
    SCRYPT_SALT_BYTES: int = 16

    # Login protection
    MAX_LOGIN_FAILED_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_SECONDS: int = 3600
    LOGIN_RATE_LIMIT_PER_MINUTE: int = 10
    LOGIN_RATE_LIMIT_PER_HOUR: int = 50
    REFRESH_RATE_LIMIT_PER_MINUTE: int = 60

    # Token cleanup
    TOKEN_RETENTION_DAYS: int = 30
    CLEANUP_API_KEY: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["http://localhost:8000"]

    # Bootstrap admin
    ADMIN_USERNAME: str = "admin"
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "admin123"

    # Database initialization discipline
    DB_INIT_MODE: str = "migrate"  # migrate | create_all | off
    DB_REQUIRE_HEAD: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, value: Any) -> Any:
        """
        Accept JSON array or comma-separated origins from env.

        Examples:
            CORS_ORIGINS=["http://localhost:8000","http://example.com"]
            CORS_ORIGINS=http://localhost:8000,http://example.com
        """
        if not isinstance(value, str):
            return value

        raw = value.strip()
        if not raw:
            return []

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None

        if isinstance(parsed, str):
            return [parsed]
        if isinstance(parsed, list):
            return [str(origin).strip() for origin in parsed if str(origin).strip()]

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    def get_log_file(self) -> str:
        p = self.LOG_FILE
        if not p or p.startswith(".."):
            return str(_BASE_DIR.parent / "logs" / "app.log")
        return p

    def get_database_url(self) -> str:
        """
        Resolve database URL.

        Priority:
          1) Explicit DATABASE_URL
          2) Construct from POSTGRES_* parts with safe URL encoding
        """
        if self.DATABASE_URL:
            return self.DATABASE_URL

        user = quote_plus(self.POSTGRES_USER)
        password = quote_plus(self.POSTGRES_PASSWORD)
        return (
            f"postgresql://{user}:{password}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    def token_lifetimes(self, remember_me: bool = False) -> tuple:
        """Return (access_seconds, refresh_seconds) for a login."""
        if remember_me:
            return (
                self.ACCESS_TOKEN_REMEMBER_ME_EXPIRE_SECONDS,
                self.REFRESH_TOKEN_REMEMBER_ME_EXPIRE_SECONDS,
            )
        return self.ACCESS_TOKEN_EXPIRE_SECONDS, self.REFRESH_TOKEN_EXPIRE_SECONDS

    def validate_token_lifetimes(self) -> None:
        """
        Access tokens must always expire before their refresh token.

        Raises:
            ValueError: If a configured access TTL is not shorter than its refresh TTL.
        """
        for remember_me in (False, True):
            access, refresh = self.token_lifetimes(remember_me)
            if access <= 0 or refresh <= 0:
                raise ValueError("Token lifetimes must be positive.")
            if access >= refresh:
                raise ValueError(
                    "Access token lifetime must be shorter than refresh token lifetime "
                    f"(remember_me={remember_me}: {access}s >= {refresh}s)."
                )

    def validate_security_settings(self) -> None:
        """
        Validate runtime security defaults in production.

        Raises:
            ValueError: If insecure defaults are detected.
        """
        self.validate_token_lifetimes()

        if self.ENVIRONMENT.lower() != "production":
            return

        insecure_secret_markers = {
            "",
            "dev-secret-key-change-in-production-use-openssl-rand-hex-32",
            "your-secret-key-change-this-in-production",
            "change-me",
        }
        insecure_admin_passwords = {
            "",
            "admin123",
            "change_this_password_immediately",
        }

        if self.SECRET_KEY in insecure_secret_markers or len(self.SECRET_KEY) < 32:
            raise ValueError(
                "Insecure SECRET_KEY for production. Use a strong key (e.g. `openssl rand -hex 32`)."
            )

        if self.ADMIN_PASSWORD in insecure_admin_passwords or len(self.ADMIN_PASSWORD) < 10:
            raise ValueError(
                "Insecure ADMIN_PASSWORD for production. Set a strong admin password before startup."
            )

        if self.CLEANUP_API_KEY and (
            self.CLEANUP_API_KEY == "default-cleanup-key-change-this" or len(self.CLEANUP_API_KEY) < 16
        ):
            raise ValueError(
                "Insecure CLEANUP_API_KEY for production. Use at least 16 random characters or leave it empty."
            )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
