"""Database connection and session management."""
from collections.abc import Generator
from contextlib import contextmanager
from datetime import datetime, timezone
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """Serialize a timestamp with a fixed width so stored values sort lexically."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utcnow_iso() -> str:
    return to_iso(utcnow())


class Database:
    """Owns the engine and session factory for one process.

    Constructed at startup and handed to the app explicitly; ``dispose`` is
    called on shutdown.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        parsed_url = make_url(url)
        is_sqlite = parsed_url.get_backend_name() == "sqlite"

        engine_kwargs: dict = {"echo": echo}
        if is_sqlite:
            # SQLite requires check_same_thread=False for FastAPI
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if parsed_url.database in (None, "", ":memory:"):
                engine_kwargs["poolclass"] = StaticPool

        self.url = url
        self.engine = create_engine(url, **engine_kwargs)

        if is_sqlite:
            @event.listens_for(self.engine, "connect")
            def enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys = ON;")
                cursor.close()

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_all(self) -> None:
        """Create tables for every registered model."""
        # Import all models so they're registered with Base
        from crm_auth import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.SessionLocal()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Context manager for database session (for use outside of FastAPI)."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        logger.info("Disposing database engine")
        self.engine.dispose()
