"""SQLAlchemy database engine, session, and base model."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL

logger = logging.getLogger(__name__)


def _build_engine(db_url: str):
    """Build a SQLAlchemy engine.  In-memory SQLite gets a single shared
    connection so every session sees the same tables."""

    if db_url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if "sqlite" in db_url:
        return create_engine(db_url, connect_args={"check_same_thread": False}, pool_pre_ping=True)

    logger.info("Using database engine for %s", db_url.split("@")[-1])
    return create_engine(db_url, pool_pre_ping=True)


engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(auth_only: bool = False):
    """Create all tables, or only the credentials table when portfolio
    data lives in a hosted store."""
    import models  # noqa: F401 – registers models with Base
    if auth_only:
        models.AuthUser.__table__.create(bind=engine, checkfirst=True)
        return
    Base.metadata.create_all(bind=engine)
