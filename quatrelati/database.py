"""
Database engine and session management.

Exposes the declarative ``Base`` every model inherits from, the
``SessionLocal`` factory and the ``get_db`` dependency used by routers.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from quatrelati.config import settings


def build_engine(database_url: str):
    """Create an engine; SQLite URLs are made usable across threads."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True, pool_recycle=3600)


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    Dependency generator for database sessions.

    Yields:
        Session: a SQLAlchemy session closed once the request ends.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create every table registered on ``Base``."""
    import quatrelati.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
