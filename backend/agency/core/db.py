"""Database engine, session factory, and declarative base."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from agency.core.config import settings


def build_engine(database_url: str, *, echo: bool = False):
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Concurrent counter writers queue on the sqlite write lock.
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, echo=echo, connect_args=connect_args, future=True)


def build_sessionmaker(bind) -> sessionmaker:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
SessionLocal = build_sessionmaker(engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields:
        Session: SQLAlchemy session
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
