"""Database engine + session management.

Request handlers use the thread-scoped session from get_session(); the app
factory removes it at teardown.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager, suppress

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker

from .models import Base

_engine: Engine | None = None
_SessionFactory: scoped_session[Session] | None = None


def _normalize_url(url: str) -> str:
    # Normalize postgres schemes to ensure SQLAlchemy uses psycopg v3
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://") :]
    if url.startswith("postgresql://") and "+" not in url.split("://", 1)[1].split("@", 1)[0]:
        # no explicit driver specified (defaults may try psycopg2), force psycopg
        return "postgresql+psycopg://" + url[len("postgresql://") :]
    return url


def _build_engine(database_url: str) -> Engine:
    return create_engine(_normalize_url(database_url), future=True, echo=False)


def init_engine(database_url: str, force: bool = False) -> Engine:
    """Initialize global engine (idempotent) or reinitialize when force=True."""
    global _engine, _SessionFactory
    if _engine is None:
        _engine = _build_engine(database_url)
        _SessionFactory = scoped_session(
            sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
        )
        return _engine
    if force:
        if _SessionFactory is not None:
            with suppress(Exception):  # pragma: no cover
                _SessionFactory.remove()
        _engine.dispose()
        _engine = _build_engine(database_url)
        _SessionFactory = scoped_session(
            sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
        )
    return _engine


def get_session() -> Session:
    if _SessionFactory is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    return _SessionFactory()


def get_new_session() -> Session:
    """Return a brand-new Session not bound to the thread-scoped registry.

    Used by best-effort side effects (notifications, XP) so their writes
    commit or fail independently of the request's unit of work.
    """
    if _engine is None:
        raise RuntimeError("DB not initialized; call init_engine first")
    factory = sessionmaker(bind=_engine, autoflush=False, autocommit=False, expire_on_commit=False)
    return factory()


def remove_session() -> None:
    if _SessionFactory is not None:
        _SessionFactory.remove()


@contextmanager
def transaction(db: Session | None = None) -> Iterator[Session]:
    """Yield `db` (default: the scoped session) and commit once on success.

    Any exception rolls back every write issued inside the block.
    """
    if db is None:
        db = get_session()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def create_all() -> None:  # dev helper ONLY for fresh ephemeral DBs (tests, scratch). Use Alembic in normal flows.
    if _engine is None:
        raise RuntimeError("Engine not initialized")
    Base.metadata.create_all(_engine)


def drop_all() -> None:  # pragma: no cover - test helper
    if _engine is None:
        raise RuntimeError("Engine not initialized")
    Base.metadata.drop_all(_engine)
