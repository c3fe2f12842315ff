from __future__ import annotations

import contextlib
import logging
from typing import Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy import exc as sa_exc
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from orderflow.app.errors import (
    AppError,
    ConflictError,
    QueryTimeoutError,
    SequenceConflictError,
    TransientInfraError,
)

logger = logging.getLogger(__name__)

# PostgreSQL "query_canceled", raised when statement_timeout fires
_QUERY_CANCELED_SQLSTATE = "57014"
_SEQUENCE_MARKERS = ("custom_id", "sequence_counters")


class Database:
    """
    Engine + session factory with an explicit lifecycle.

    Created once at process start (see create_app) and disposed at shutdown,
    so tests can hand the app an in-memory database instead.
    """

    def __init__(self, url: str, *, engine: Engine | None = None, **engine_kwargs) -> None:
        self.url = url
        self.engine = engine or create_engine(url, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)

    @classmethod
    def from_config(cls, config) -> "Database":
        url = config.DATABASE_URL
        if url.startswith("sqlite"):
            return cls(url, connect_args={"timeout": config.DB_POOL_TIMEOUT_SECONDS})

        return cls(
            url,
            pool_pre_ping=True,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout=config.DB_POOL_TIMEOUT_SECONDS,
            connect_args={
                "connect_timeout": config.DB_POOL_TIMEOUT_SECONDS,
                "options": f"-c statement_timeout={int(config.DB_STATEMENT_TIMEOUT_MS)}",
            },
        )

    def session(self) -> Session:
        return self.SessionLocal()

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def dispose(self) -> None:
        logger.info("disposing database pool", extra={"dialect": self.engine.dialect.name})
        self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def translate_db_error(exc: Exception) -> Exception:
    """Map SQLAlchemy failures onto the application error taxonomy."""
    if isinstance(exc, AppError):
        return exc

    if isinstance(exc, sa_exc.TimeoutError):
        # pool checkout wait exceeded
        return TransientInfraError("Timed out waiting for a database connection", details=str(exc))

    if isinstance(exc, sa_exc.IntegrityError):
        message = str(getattr(exc, "orig", exc))
        if any(marker in message for marker in _SEQUENCE_MARKERS):
            return SequenceConflictError(details=message)
        return ConflictError("Integrity constraint violated", details=message)

    if isinstance(exc, sa_exc.DBAPIError):
        orig = getattr(exc, "orig", None)
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate == _QUERY_CANCELED_SQLSTATE:
            return QueryTimeoutError(details=str(orig))
        if exc.connection_invalidated or isinstance(exc, (sa_exc.OperationalError, sa_exc.InterfaceError)):
            return TransientInfraError(details=str(orig or exc))

    if isinstance(exc, sa_exc.DisconnectionError):
        return TransientInfraError(details=str(exc))

    return exc


@contextlib.contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    One unit of work: commit on success, explicit rollback on any failure.

    SQLAlchemy errors leave as application errors (see translate_db_error).
    """
    try:
        yield db
        db.commit()
    except sa_exc.SQLAlchemyError as exc:
        db.rollback()
        translated = translate_db_error(exc)
        if translated is exc:
            raise
        raise translated from exc
    except Exception:
        db.rollback()
        raise
