"""
Engine and session lifecycle.

DATABASE_URL selects PostgreSQL in deployed environments; without it the
app runs against a local SQLite file (SQLITE_PATH, default viralhub_dev.db).
"""

import logging
import os
from functools import lru_cache
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from viralhub.utils import get_settings
from .models import Base

logger = logging.getLogger(__name__)

POSTGRES_POOL = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def get_database_url() -> str:
    """DATABASE_URL with the legacy postgres:// scheme fixed, else SQLite."""
    url = get_settings().DATABASE_URL
    if not url:
        path = os.getenv("SQLITE_PATH", "viralhub_dev.db")
        logger.warning(f"DATABASE_URL not set, falling back to SQLite at {path}")
        return f"sqlite:///{path}"

    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores foreign keys unless every connection opts in."""

    @event.listens_for(engine, "connect")
    def _foreign_keys_on(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url: Optional[str] = None) -> Engine:
    url = url or get_database_url()
    echo = os.getenv("SQL_DEBUG", "").lower() == "true"

    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
        enable_sqlite_foreign_keys(engine)
    else:
        engine = create_engine(url, echo=echo, **POSTGRES_POOL)

    logger.info(f"Database engine ready ({engine.dialect.name})")
    return engine


@lru_cache()
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache()
def get_session_factory() -> sessionmaker:
    # Objects stay readable after commit; routers serialize after writing
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session for FastAPI's Depends."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def init_db(engine: Optional[Engine] = None) -> None:
    """Create missing tables. Safe to call on every startup."""
    Base.metadata.create_all(bind=engine or get_engine())
    logger.info("Database tables verified")


def check_db_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database connection failed: {e}")
        return False
    return True
