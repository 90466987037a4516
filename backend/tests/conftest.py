from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.core.database import Database
from app.core.passwords import PasswordHasher
from app.core.security import JWTManager
from app.main import create_app
from app.services.auth_service import AuthService
from app.services.login_log_service import LoginLogService
from app.services.token_cleanup_service import TokenCleanupService
from app.services.token_store import TokenStore
from app.services.user_service import UserService

ADMIN_PASSWORD = "AdminPass123!"
CLEANUP_KEY = "cleanup-key-for-tests"


class FakeClock:
    """Manually advanced clock returning naive UTC datetimes."""

    def __init__(self, start=datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def hasher():
    # Low cost keeps the suite fast; format and semantics are unchanged.
    return PasswordHasher(cost=1024, block_size=8, parallelization=1)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        DB_INIT_MODE="create_all",
        LOG_FILE=str(tmp_path / "app.log"),
        SECRET_KEY="test-secret-key-with-enough-length-0123456789",
        CLEANUP_API_KEY=CLEANUP_KEY,
        ADMIN_USERNAME="admin",
        ADMIN_EMAIL="admin@example.com",
        ADMIN_PASSWORD=ADMIN_PASSWORD,
        LOGIN_RATE_LIMIT_PER_MINUTE=1000,
        LOGIN_RATE_LIMIT_PER_HOUR=1000,
        REFRESH_RATE_LIMIT_PER_MINUTE=1000,
    )


@pytest.fixture
def database():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    with database.session() as session:
        yield session


@pytest.fixture
def services(settings, database, clock, hasher):
    token_store = TokenStore(clock)
    users = UserService(
        token_store,
        hasher,
        clock=clock,
        max_failed_attempts=settings.MAX_LOGIN_FAILED_ATTEMPTS,
        lockout_seconds=settings.LOGIN_LOCKOUT_SECONDS,
    )
    login_logs = LoginLogService(clock)
    auth = AuthService(
        token_store,
        hasher,
        JWTManager.from_settings(settings, clock=clock),
        users,
        login_logs,
        settings,
        clock=clock,
    )
    cleanup = TokenCleanupService(database, token_store, retention_days=0, clock=clock)
    return SimpleNamespace(
        token_store=token_store,
        users=users,
        login_logs=login_logs,
        auth=auth,
        cleanup=cleanup,
    )


@pytest.fixture
def alice(services, db):
    return services.users.create_user(db, "alice", "Secret123!", email="Alice@Example.com")


@pytest.fixture
def application(settings, database, clock, hasher):
    return create_app(settings=settings, database=database, clock=clock, password_hasher=hasher)


@pytest.fixture
def client(application):
    with TestClient(application) as test_client:
        yield test_client


def login(client, username, password, **extra):
    return client.post("/api/v1/login", json={"username": username, "password": password, **extra})


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
