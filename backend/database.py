import os
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base

from config import (
    DATABASE_URL, DB_POOL_SIZE, DB_MAX_OVERFLOW, DB_POOL_TIMEOUT,
    DB_POOL_RECYCLE, DB_ECHO, LOG_LEVEL,
)
from errors import BoardError, StoreError

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

Base = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url)


class StoreGateway:
    """
    Owns the engine and its bounded connection pool.

    Every logical operation takes its own scope: transaction() for anything
    that writes, session() for reads. A connection is checked out for the
    duration of the scope and returned to the pool on exit, never held
    between unrelated calls.
    """

    def __init__(
        self,
        url: str = DATABASE_URL,
        pool_size: int = DB_POOL_SIZE,
        max_overflow: int = DB_MAX_OVERFLOW,
        pool_timeout: int = DB_POOL_TIMEOUT,
        pool_recycle: int = DB_POOL_RECYCLE,
        echo: bool = DB_ECHO,
    ):
        self.url = url

        engine_args = {}
        if url.startswith("sqlite"):
            engine_args["connect_args"] = {"check_same_thread": False}
        if not _is_memory_sqlite(url):
            engine_args.update({
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_timeout": pool_timeout,
                "pool_recycle": pool_recycle,
            })

        try:
            self.engine = create_engine(url, echo=echo, **engine_args)
        except Exception as e:
            logger.error(f"Failed to create engine: {e}")
            raise

        if url.startswith("sqlite"):
            event.listen(self.engine, "connect", _sqlite_pragmas)

        self._session_factory = sessionmaker(
            bind=self.engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    # ------------------------------------------------------------------
    @contextmanager
    def transaction(self):
        """
        Unit of work. Commits when the block exits normally and rolls back on
        any exit by exception, including errors raised on purpose by callers.
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except BoardError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Transaction rolled back: {e}")
            raise StoreError("Database operation failed") from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @contextmanager
    def session(self):
        """Read-only scope. Nothing is committed."""
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            logger.error(f"Read failed: {e}")
            raise StoreError("Database operation failed") from e
        finally:
            db.close()

    # ------------------------------------------------------------------
    def init_schema(self):
        """Create the data/ directory for a local SQLite file, then create all tables."""
        if self.url.startswith("sqlite:///") and not _is_memory_sqlite(self.url):
            directory = os.path.dirname(self.url[len("sqlite:///"):])
            if directory:
                os.makedirs(directory, exist_ok=True)

        # Import all models so they register with Base.metadata
        from models.task import Task
        from models.category import Category
        from models.task_category_link import TaskCategoryLink

        Base.metadata.create_all(bind=self.engine)
        logger.info("Database initialized successfully.")

    def ping(self) -> bool:
        """Round-trip a trivial query. Raises StoreError when the store is unreachable."""
        with self.session() as db:
            return db.execute(text("SELECT 1 + 1")).scalar() == 2

    def dispose(self):
        self.engine.dispose()


def _sqlite_pragmas(dbapi_connection, connection_record):
    """SQLite leaves foreign keys off per connection; cascades and RESTRICT need them on."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    # WAL lets readers see the last committed state while a writer is mid-transaction
    mode = cursor.execute("PRAGMA journal_mode").fetchone()[0]
    if mode.lower() != "wal":
        cursor.execute("PRAGMA journal_mode = WAL")
    cursor.close()

