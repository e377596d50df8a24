"""
Database Connection Management for the Clearance Certificate Service

Owns the engine and the session factory. The clearance service asks for a
unit of work per operation; nothing else in the application opens sessions.

Connection establishment is retried with tenacity (the database container
often starts after the API). Errors raised while a unit of work is running
are never retried here.
"""

import os
import logging
from typing import Generator, Optional, Callable
from contextlib import contextmanager
from functools import lru_cache
from dataclasses import dataclass

from sqlalchemy import create_engine, event, text, Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)

from database.models import Base

logger = logging.getLogger(__name__)

# Environment variables that override config.yaml, keyed by settings attribute
_ENV_OVERRIDES = {
    "host": "DB_HOST",
    "port": "DB_PORT",
    "database": "DB_NAME",
    "user": "DB_USER",
    "password": "DB_PASSWORD",
}


# ============================================
# SETTINGS
# ============================================

@dataclass
class DatabaseSettings:
    """Where the clearance store lives and how to pool connections to it."""
    host: str = "localhost"
    port: int = 5432
    database: str = "clearance_database"
    user: str = "clearance_user"
    password: str = "clearance_password"
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle: int = 1800
    connect_attempts: int = 3
    echo: bool = False
    url: Optional[str] = None

    @classmethod
    def from_env(cls, base: Optional['DatabaseSettings'] = None) -> 'DatabaseSettings':
        """Apply DATABASE_URL, DB_* and DB_POOL_* environment variables on top of ``base``."""
        settings = base or cls()
        for attr, var in _ENV_OVERRIDES.items():
            if var in os.environ:
                value = os.environ[var]
                setattr(settings, attr, int(value) if attr == "port" else value)

        settings.pool_size = int(os.getenv("DB_POOL_SIZE", settings.pool_size))
        settings.max_overflow = int(os.getenv("DB_MAX_OVERFLOW", settings.max_overflow))
        settings.echo = os.getenv("DB_ECHO", str(settings.echo)).lower() == "true"
        settings.url = os.getenv("DATABASE_URL") or settings.url
        return settings

    @classmethod
    def from_config(cls, config) -> 'DatabaseSettings':
        """Settings from the ``database`` section of config.yaml; environment still wins."""
        return cls.from_env(cls(
            host=config.host,
            port=int(config.port),
            database=config.name,
            user=config.user,
            password=config.password,
        ))

    def get_url(self) -> str:
        if self.url:
            return self.url
        return (
            f"postgresql+psycopg2://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    @property
    def is_sqlite(self) -> bool:
        return self.get_url().startswith("sqlite")

    def engine_options(self) -> dict:
        if self.is_sqlite:
            # SQLite connections are shared with FastAPI's worker threads
            return {"echo": self.echo, "connect_args": {"check_same_thread": False}}
        return {
            "echo": self.echo,
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_recycle": self.pool_recycle,
            "pool_pre_ping": True,
        }


@lru_cache()
def get_settings() -> DatabaseSettings:
    """Environment-only settings (used by Alembic)."""
    return DatabaseSettings.from_env()


def _connect_retry(attempts: int) -> Callable:
    """Retry OperationalError with exponential backoff, then re-raise."""
    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(OperationalError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


# ============================================
# UNIT OF WORK
# ============================================

class UnitOfWork:
    """
    One session, one transaction.

    Anything not committed when the block exits is rolled back.

    Usage:
        with provider.get_unit_of_work() as uow:
            ClearanceRepository(uow.session).delete(record_id)
            uow.commit()
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._session: Optional[Session] = None
        self._committed = False

    def __enter__(self) -> 'UnitOfWork':
        self._session = self._session_factory()
        self._committed = False
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None or not self._committed:
                self.rollback()
        finally:
            self._session.close()
            self._session = None

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork not started. Use as context manager.")
        return self._session

    def commit(self) -> None:
        self.session.commit()
        self._committed = True

    def rollback(self) -> None:
        if self._session is not None:
            self._session.rollback()


# ============================================
# SESSION PROVIDER
# ============================================

class DatabaseSessionProvider:
    """Lazily connects to the database and hands out units of work."""

    def __init__(
        self,
        settings: Optional[DatabaseSettings] = None,
        engine: Optional[Engine] = None
    ):
        """
        Args:
            settings: Connection settings (environment only if not provided)
            engine: Pre-created engine, e.g. in-memory SQLite for tests
        """
        self._settings = settings or get_settings()
        self._engine = engine
        self._session_factory: Optional[sessionmaker] = None

    @property
    def initialized(self) -> bool:
        return self._session_factory is not None

    def init(self, echo: Optional[bool] = None) -> None:
        """Connect (with retry) and build the session factory. Idempotent."""
        if self.initialized:
            return

        if echo is not None:
            self._settings.echo = echo
        if self._engine is None:
            connect = _connect_retry(self._settings.connect_attempts)(self._connect)
            self._engine = connect()

        @event.listens_for(self._engine, "connect")
        def on_connect(dbapi_connection, connection_record):
            logger.debug("New database connection established")

        # Records stay readable after the unit of work closes
        self._session_factory = sessionmaker(
            bind=self._engine,
            autoflush=False,
            expire_on_commit=False
        )
        logger.info("Database session provider initialized")

    def _connect(self) -> Engine:
        engine = create_engine(self._settings.get_url(), **self._settings.engine_options())
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except OperationalError:
            engine.dispose()
            raise
        return engine

    def get_unit_of_work(self) -> UnitOfWork:
        if not self.initialized:
            self.init()
        return UnitOfWork(self._session_factory)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Session that commits on success and rolls back on error."""
        with self.get_unit_of_work() as uow:
            yield uow.session
            uow.commit()

    def create_tables(self) -> None:
        if not self.initialized:
            self.init()
        Base.metadata.create_all(self._engine)
        logger.info("Database tables created")

    def health_check(self) -> bool:
        """True when a trivial query succeeds."""
        try:
            with self.session_scope() as session:
                session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database engine disposed")
        self._session_factory = None


# ============================================
# APPLICATION-WIDE PROVIDER
# ============================================

_db_provider: Optional[DatabaseSessionProvider] = None


def get_db_provider() -> DatabaseSessionProvider:
    """The provider used by the API; created from the environment on first use."""
    global _db_provider
    if _db_provider is None:
        _db_provider = DatabaseSessionProvider()
    return _db_provider


def init_db(
    database_config=None,
    create_tables: bool = False,
    echo: Optional[bool] = None
) -> DatabaseSessionProvider:
    """
    Connect the application-wide provider during startup.

    Args:
        database_config: ``config_manager.DatabaseConfig``; environment only if omitted
        create_tables: Create missing tables after connecting
        echo: Log all SQL statements (DB_ECHO decides when omitted)
    """
    global _db_provider
    if _db_provider is None and database_config is not None:
        _db_provider = DatabaseSessionProvider(DatabaseSettings.from_config(database_config))

    provider = get_db_provider()
    provider.init(echo=echo)
    if create_tables:
        provider.create_tables()
    return provider


def close_db() -> None:
    """Dispose the application-wide provider during shutdown."""
    global _db_provider
    if _db_provider is not None:
        _db_provider.close()
        _db_provider = None


def create_test_provider(
    engine: Optional[Engine] = None,
    settings: Optional[DatabaseSettings] = None
) -> DatabaseSessionProvider:
    """Provider bound to a test engine (in-memory SQLite unless given)."""
    return DatabaseSessionProvider(
        settings=settings or DatabaseSettings(url="sqlite://"),
        engine=engine
    )
