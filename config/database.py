"""Database configuration with SQLAlchemy."""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import SQLAlchemyError
from contextlib import contextmanager
from typing import Generator, Optional
import logging
from config.settings import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class DatabaseError(Exception):
    """Custom database exception."""
    pass


def _create_engine(database_url: str):
    """Create an engine suited to the backend behind the URL."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=settings.db_echo, **kwargs)

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        echo=settings.db_echo
    )


class DatabaseManager:
    """Database operations manager with transaction support."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.database_url
        self.engine = _create_engine(self.database_url)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Session with commit on success; store failures become DatabaseError."""
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise DatabaseError(f"Database operation failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def init_database(self):
        """Create every table of the declarative metadata."""
        # Registers the mapped classes on Base.metadata
        import models.database_models  # noqa: F401

        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Database initialization failed: {e}")
            raise DatabaseError(f"Database initialization failed: {e}") from e

    def drop_database(self):
        """Drop every table (tests and maintenance scripts)."""
        Base.metadata.drop_all(bind=self.engine)

    def check_connection(self) -> bool:
        """Check if database connection is working."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection successful")
            return True
        except Exception as e:
            logger.error(f"Database connection check failed: {e}")
            return False


# Global database manager instance
db_manager = DatabaseManager()


def init_database():
    """Initialize database tables."""
    db_manager.init_database()


def check_database_connection() -> bool:
    """Check if database connection is working."""
    return db_manager.check_connection()
