# passhub/core/db.py
"""
Engine and session scope for the pass economy engine.

One database holds groups, memberships and subscription payments. Services
commit their own steps; scripts wrap a whole run in get_db_session_ctx().
"""
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import Config
from models.base import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///passhub.db"

_engine = None
_SessionFactory = None


def _build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        engine = create_engine(database_url, **kwargs)

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(database_url, pool_pre_ping=True)


def get_engine() -> Engine:
    """Engine for Config.DATABASE_URL, created on first use."""
    global _engine
    if _engine is None:
        database_url = Config.get(Config.DATABASE_URL, DEFAULT_DATABASE_URL)
        _engine = _build_engine(database_url)
        logger.info(f"Database engine created: {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def reset_engine():
    """Dispose the cached engine so the next call picks up the current DATABASE_URL."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@contextmanager
def get_db_session_ctx():
    """
    Session committed on clean exit, rolled back on any exception.

    Usage:
        with get_db_session_ctx() as session:
            group = session.query(Group).filter_by(groupID=group_id).first()
    """
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    session = _SessionFactory()
    try:
        yield session
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Database session rolled back: {e}")
        raise
    finally:
        session.close()


def setup_database():
    """Create every table registered on Base.metadata."""
    import models  # noqa: F401  registers all mappers on Base.metadata

    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info(f"Database ready: {', '.join(sorted(Base.metadata.tables))}")
