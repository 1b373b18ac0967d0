"""
Database connection management with connection pooling.

The application owns exactly one ``Database`` handle. It is built by
``create_app()``, stored on ``app.state.db``, and disposed when the
application shuts down. Request handlers receive sessions through the
``get_db`` dependency and never reach for a module-level engine.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional
import logging

from fastapi import HTTPException, Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from core.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(url: str, config: Optional[Settings] = None, echo: bool = False) -> Engine:
    """Create an engine with pooling suited to the backing store."""
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads.
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=config.DB_POOL_SIZE if config else 10,
        max_overflow=config.DB_MAX_OVERFLOW if config else 5,
        pool_timeout=config.DB_POOL_TIMEOUT if config else 30,
        pool_recycle=config.DB_POOL_RECYCLE if config else 3600,
        pool_pre_ping=True,  # Verify connections before using
        echo=echo,
    )


class Database:
    """Pooled datastore handle plus the process-wide health flag."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=engine,
            expire_on_commit=False,  # Prevent lazy loading issues
        )
        self.health: Dict[str, Any] = {"healthy": False, "error": None, "checked_at": None}
        _attach_pool_listeners(engine)

    @classmethod
    def from_settings(cls, config: Settings) -> "Database":
        return cls(build_engine(config.database_url, config, echo=config.DEBUG))

    def session(self) -> Session:
        """
        Plain session for scripts and tests.

        Note: This does NOT auto-commit or auto-rollback.
        Caller must manage transactions explicitly.
        """
        return self.session_factory()

    def create_all(self) -> None:
        # Models must be imported so their tables register on Base.metadata.
        import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def check_health(self) -> Dict[str, Any]:
        """Ping the database and record the outcome on ``self.health``."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            self.health = {"healthy": True, "error": None}
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            self.health = {"healthy": False, "error": str(e)}
        self.health["checked_at"] = datetime.now(timezone.utc).isoformat()
        return dict(self.health)

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Database connection pool disposed")


def _attach_pool_listeners(engine: Engine) -> None:
    @event.listens_for(engine, "checkout")
    def receive_checkout(dbapi_conn, connection_record, connection_proxy):
        logger.debug("Connection checked out from pool")

    @event.listens_for(engine, "checkin")
    def receive_checkin(dbapi_conn, connection_record):
        logger.debug("Connection returned to pool")


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency for FastAPI to get a request-scoped database session.

    This function ensures:
    - Connection is acquired from the application's pool
    - Transaction is committed when the handler returns normally
    - Transaction is rolled back on any error
    - Connection is returned to the pool after the request
    """
    db = get_database(request).session()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        # Only log actual database errors, not HTTP exceptions
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()
