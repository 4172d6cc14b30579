"""
Database connection and session management.

The SQLAlchemy engine (and its connection pool) lives inside a ``Database``
context object that is handed to every component at construction time,
instead of a module-wide engine. The context has an explicit lifecycle:

    database = Database.from_settings(settings)
    database.startup()        # create tables, start accepting work
    with database.session() as db:
        ...
    database.shutdown()       # refuse new work, drain in-flight, dispose pool
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Iterator
from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from pairchat.core.config import Settings
from pairchat.core.errors import InternalError

logger = logging.getLogger(__name__)

# Create Base class for models
Base = declarative_base()


class Database:
    """Owns the engine, the session factory and the in-flight work counter."""

    def __init__(
        self,
        url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
        pool_recycle: int = 3600,
        drain_seconds: float = 10.0,
        echo: bool = False
    ):
        self.url = url
        self.drain_seconds = drain_seconds

        if url.startswith("sqlite"):
            # SQLite ignores pool sizing; the busy timeout serializes writers
            engine_kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        else:
            engine_kwargs = {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": pool_pre_ping,
                "pool_recycle": pool_recycle,
            }

        self.engine = create_engine(url, echo=echo, **engine_kwargs)
        self.SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=self.engine)

        self._condition = threading.Condition()
        self._in_flight = 0
        self._accepting = False
        self._disposed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            pool_recycle=settings.db_pool_recycle,
            drain_seconds=settings.shutdown_drain_seconds,
            echo=settings.log_level.upper() == "DEBUG",
        )

    @property
    def in_flight(self) -> int:
        """Number of sessions currently checked out."""
        with self._condition:
            return self._in_flight

    @property
    def accepting(self) -> bool:
        with self._condition:
            return self._accepting

    def startup(self) -> None:
        """
        Create all tables and start accepting work.
        Safe to call more than once.
        """
        from pairchat.db import models  # noqa: F401  Import models to register them with Base

        if self._disposed:
            raise InternalError("Database has been shut down")
        Base.metadata.create_all(bind=self.engine)
        with self._condition:
            self._accepting = True
        logger.info("Database ready")

    def shutdown(self) -> None:
        """
        Stop accepting work, wait for in-flight sessions to finish, then
        dispose of the connection pool. Safe to call more than once.
        """
        with self._condition:
            if self._disposed:
                return
            self._accepting = False
            deadline = time.monotonic() + self.drain_seconds
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning(f"Shutdown drain timed out with {self._in_flight} sessions in flight")
                    break
                self._condition.wait(remaining)
            self._disposed = True

        self.engine.dispose()
        logger.info("Database connection pool disposed")

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Provide a session for one unit of work.

        Unhandled SQLAlchemy errors are rolled back, logged in full and
        re-raised as a generic InternalError.
        """
        with self._condition:
            if not self._accepting:
                raise InternalError()
            self._in_flight += 1

        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Database operation failed: {e}")
            raise InternalError() from e
        finally:
            db.close()
            with self._condition:
                self._in_flight -= 1
                self._condition.notify_all()

    def ping(self) -> bool:
        """Check database connectivity with a trivial query."""
        try:
            with self.session() as db:
                db.execute(text("SELECT 1")).fetchone()
            return True
        except InternalError:
            return False
