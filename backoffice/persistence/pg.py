from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Generator, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from backoffice.core.config import Settings, get_settings
from backoffice.domain.errors import PersistenceConflict
from backoffice.persistence.models import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_engine_from_url(url: str):
    settings = get_settings()
    connect_args: dict = {}
    if url.startswith("sqlite"):
        # Request threads share the pool; the busy timeout makes a second
        # writer wait for the first commit instead of failing immediately.
        connect_args = {"check_same_thread": False, "timeout": settings.db_lock_timeout_seconds}
    elif url.startswith("postgresql"):
        connect_args = {
            "options": (
                f"-c lock_timeout={settings.db_lock_timeout_seconds * 1000} "
                f"-c statement_timeout={settings.db_statement_timeout_ms}"
            )
        }
    return create_engine(url, future=True, pool_pre_ping=True, connect_args=connect_args)


settings = get_settings()
engine = create_engine_from_url(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session


def run_atomic(work: Callable[[Session], T], retries: int | None = None, settings: Settings | None = None) -> T:
    """Run ``work`` as one transaction, retrying on write conflicts.

    Integrity and stale-row errors surface as :class:`PersistenceConflict`;
    every retry starts from a fresh session so all reads are re-done.
    """
    if retries is None:
        retries = (settings or get_settings()).conflict_retry_attempts
    attempts = 1 + retries
    for attempt in range(1, attempts + 1):
        try:
            with session_scope() as session:
                return work(session)
        except PersistenceConflict as exc:
            conflict = exc
        except (IntegrityError, StaleDataError) as exc:
            conflict = PersistenceConflict(f"concurrent write conflict: {exc.__class__.__name__}")
            conflict.__cause__ = exc

        if attempt >= attempts:
            raise conflict
        logger.warning("persistence conflict, retrying (attempt %s/%s): %s", attempt, attempts, conflict)
    raise AssertionError("unreachable")
