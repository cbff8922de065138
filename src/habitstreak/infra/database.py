"""Engine, session and transaction helpers."""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Callable, Iterator, Tuple, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlmodel import Session, SQLModel, create_engine

from ..config import BaseConfig
from ..errors import ConflictError, HabitStreakError, TransientError
from ..logging_config import get_logger

logger = get_logger("database")

T = TypeVar("T")
SessionFactory = Callable[[], Session]


def create_db_engine(config: BaseConfig):
    """Create SQLModel engine from configuration."""
    engine = create_engine(config.DATABASE_URL, **config.sqlalchemy_engine_options())
    if config.is_sqlite:
        pragmas = dict(config.SQLITE_PRAGMAS)

        @event.listens_for(engine, "connect")
        def _apply_pragmas(dbapi_connection, connection_record):  # noqa: ARG001
            cursor = dbapi_connection.cursor()
            for key, value in pragmas.items():
                cursor.execute(f"PRAGMA {key}={value}")
            cursor.close()

    return engine


def init_database(engine) -> None:
    """Create any missing tables."""
    # Import all models to ensure they're registered
    from .. import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def create_session_factory(engine) -> SessionFactory:
    """Create a session factory whose sessions commit on clean exit."""

    @contextmanager
    def factory() -> Iterator[Session]:
        session = Session(engine, expire_on_commit=False)
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


def bootstrap_database(config: BaseConfig | None = None) -> Tuple:
    """Build engine + session_factory and make sure the schema exists.

    Returns (engine, session_factory).
    """

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    init_database(engine)
    return engine, create_session_factory(engine)


def _is_transient(exc: DBAPIError) -> bool:
    return (
        isinstance(exc, (OperationalError, InterfaceError))
        or exc.connection_invalidated
    )


def run_in_transaction(
    session_factory: SessionFactory,
    work: Callable[[Session], T],
    *,
    attempts: int = 3,
    backoff: float = 0.05,
    operation: str = "write",
) -> T:
    """Run ``work`` inside one transaction, retrying only transient failures.

    ``work`` receives the session and must not commit; the commit happens here
    once it returns, and any exception rolls every statement back. Unique-index
    violations become :class:`ConflictError` without a retry. Operational
    errors (locks, dropped connections), interface errors and any driver error
    that invalidated the connection are retried with exponential backoff and
    become :class:`TransientError` once ``attempts`` are used up.
    """

    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    last_error: DBAPIError | None = None
    for attempt in range(1, attempts + 1):
        try:
            with session_factory() as session:
                result = work(session)
                session.commit()
                return result
        except HabitStreakError:
            raise
        except IntegrityError as exc:
            logger.warning(
                "Uniqueness conflict during %s", operation, extra={"attempt": attempt}
            )
            raise ConflictError(
                f"Concurrent update detected during {operation}; try again"
            ) from exc
        except DBAPIError as exc:
            if not _is_transient(exc):
                raise
            last_error = exc
            if attempt == attempts:
                break
            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Storage error during %s, retrying",
                operation,
                extra={"attempt": attempt, "delay": delay, "error": str(exc.orig)},
            )
            time.sleep(delay)

    logger.error(
        "Storage unavailable during %s after %d attempts",
        operation,
        attempts,
        extra={"error": str(last_error)},
    )
    raise TransientError(
        f"Storage unavailable during {operation}; try again later", attempts=attempts
    ) from last_error
