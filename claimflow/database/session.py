# claimflow/database/session.py
"""Engine, session factory and transactional scope."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from claimflow.core.config import settings
from claimflow.core.exceptions import ClaimFlowException, ConflictError, StorageError
from claimflow.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """Owns the engine and hands out transactional sessions."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        engine_kwargs = {"echo": echo}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **engine_kwargs)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

    def _ensure_directory(self):
        if self.url.startswith("sqlite:///") and ":memory:" not in self.url:
            Path(self.url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)

    def create_all(self):
        """Create every table registered on the declarative base."""
        # Import registers the mapped classes
        from claimflow.database import tables  # noqa: F401

        self._ensure_directory()
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ready", url=self.url)

    def drop_all(self):
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a session that commits on success and rolls back on any error.

        Domain exceptions propagate unchanged. Optimistic-lock and uniqueness
        failures become ConflictError; other SQLAlchemy failures become
        StorageError.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except ClaimFlowException:
            session.rollback()
            raise
        except StaleDataError as e:
            session.rollback()
            logger.warning("Optimistic lock lost", error=str(e))
            raise ConflictError("Record was modified concurrently, re-read and retry") from e
        except IntegrityError as e:
            session.rollback()
            logger.warning("Integrity constraint violated", error=str(e.orig))
            raise ConflictError("Conflicting write rejected by the store",
                                details={"constraint": str(e.orig)}) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Transaction failed", error=str(e))
            raise StorageError("transaction", str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


# ===================
# Singleton
# ===================

_database: Optional[Database] = None


def get_database() -> Database:
    """Get the process-wide database instance."""
    global _database
    if _database is None:
        _database = Database(settings.database_url, echo=settings.DATABASE_ECHO)
        logger.info("Database initialized")
    return _database


def set_database(database: Optional[Database]):
    """Replace the process-wide database instance."""
    global _database
    _database = database
