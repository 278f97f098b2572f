"""
Database layer — PostgreSQL via SQLAlchemy 2.0 + psycopg.

Provides:
    • Lazily created engine and session factory
    • Dependency injection for FastAPI routes
    • Connection pool management
    • Base model for ORM entities

Usage:
    from crisis_backend.app.core.database import get_db, Base

    class Household(Base):
        __tablename__ = "households"
        id: Mapped[int] = mapped_column(primary_key=True)

    @router.get("/households")
    def list_households(db: Session = Depends(get_db)):
        return db.scalars(select(Household)).all()
"""

from __future__ import annotations

import logging
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from crisis_backend.app.core.config import settings

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──
def get_engine() -> Engine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        kwargs = {"echo": settings.DATABASE_ECHO, "future": True}
        if not settings.is_sqlite:
            kwargs.update(
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_pre_ping=True,
            )
        _engine = create_engine(settings.DATABASE_URL, **kwargs)
        logger.info("Database engine created for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


# ── Session Factory ──
def get_session_factory() -> sessionmaker:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


def bind_engine(engine: Engine) -> sessionmaker:
    """Replace the process-wide engine (scripts and tests)."""
    global _engine, _session_factory
    _engine = engine
    _session_factory = sessionmaker(engine, expire_on_commit=False)
    return _session_factory


# ── Dependency ──
def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: yields a database session."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ── Lifecycle ──
def init_db() -> None:
    """Create all tables (dev/test only — use migrations in production)."""
    # Import models so every table is registered on Base.metadata
    from crisis_backend.app.crisis import models as _crisis_models  # noqa: F401
    from crisis_backend.app.notifications import models as _notification_models  # noqa: F401
    from crisis_backend.app.users import models as _user_models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("Database tables initialised")


def close_db() -> None:
    """Dispose engine connections."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
