"""Database configuration and session management"""

import logging
from contextlib import contextmanager
from typing import Generator

from fastapi import Request
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()


class Database:
    """
    Engine and session factory owned by the process entry point.

    Constructed explicitly and handed to whatever needs it; there is no
    module-level engine.
    """

    def __init__(self, url: str, *, echo: bool = False, pool_size: int = 20, max_overflow: int = 10):
        self.url = url
        self.engine: Engine = self._create_engine(url, echo, pool_size, max_overflow)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.get_database_url(),
            echo=settings.DEBUG,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )

    @staticmethod
    def _create_engine(url: str, echo: bool, pool_size: int, max_overflow: int) -> Engine:
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}, "echo": echo}
            if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
                kwargs["poolclass"] = StaticPool
            return create_engine(url, **kwargs)
        return create_engine(
            url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=30,
            pool_recycle=3600,
            pool_pre_ping=True,
            echo=echo,
        )

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session scope for work outside a request."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def ping(self) -> None:
        """Raise if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def create_all(self) -> None:
        # Import models so metadata is populated.
        from app import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Dependency for getting database session

    Yields:
        Session: Database session bound to the application's Database
    """
    database: Database = request.app.state.database
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(database: Database, mode: str = "migrate", require_head: bool = True) -> None:
    """
    Initialize database according to configured strategy.

    DB_INIT_MODE:
      - migrate: require alembic_version table (migration-first discipline)
      - create_all: legacy behavior for local/dev bootstrap
      - off: skip initialization check
    """
    mode = (mode or "").lower().strip()
    database.ping()

    if mode == "off":
        logger.info("DB initialization check skipped (DB_INIT_MODE=off)")
        return

    if mode == "create_all":
        database.create_all()
        logger.warning("Using create_all database initialization (recommended only for local development).")
        return

    if mode == "migrate":
        engine = database.engine
        with engine.connect() as conn:
            if engine.dialect.name == "postgresql":
                exists = bool(conn.execute(text("SELECT to_regclass('public.alembic_version')")).scalar())
            else:
                exists = "alembic_version" in inspect(conn).get_table_names()
            if require_head and not exists:
                raise RuntimeError(
                    "Migration table missing. Run Alembic migrations before starting the API."
                )
        logger.info("Migration metadata detected.")
        return

    raise RuntimeError(f"Unknown DB_INIT_MODE: {mode}")
