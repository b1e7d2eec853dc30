"""SQLite SQLAlchemy store wrapper."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.errors import StoreUnavailable
from memory.schemas import Base

logger = logging.getLogger("ax.sql_store")


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC. SQLite drops tzinfo on read; stored values are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class SQLStore:
    """Provides SQLAlchemy session management for SQLite persistence."""

    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) == ":memory:":
            self.db_path = None
            url = "sqlite+pysqlite:///:memory:"
            # One shared connection so every session sees the same database.
            engine_kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        else:
            self.db_path = Path(db_path)
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite+pysqlite:///{self.db_path}"
            engine_kwargs = {}
        self.engine = create_engine(url, future=True, **engine_kwargs)
        self._session_factory = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)

    def create_all(self) -> None:
        """Create all schema tables if missing."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot initialise store at {self.db_path}: {exc}") from exc

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Context manager that commits on success and rolls back on error.

        Database errors surface as ``StoreUnavailable``.
        """
        sess = self._session_factory()
        try:
            yield sess
            sess.commit()
        except SQLAlchemyError as exc:
            sess.rollback()
            logger.warning("Store operation failed: %s", exc)
            raise StoreUnavailable(str(exc)) from exc
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()
