from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings


def build_engine(database_url: str, echo: bool = False):
    """Create an engine, handling the SQLite check_same_thread special case"""
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}

    return create_engine(
        database_url,
        connect_args=connect_args,
        echo=echo,
        pool_pre_ping=True,
    )


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency to get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Dependency returning the session factory, for services that open their own sessions"""
    return SessionLocal


def create_tables(bind=None):
    """Create all tables in the database"""
    from . import models  # noqa: F401  register mappers

    Base.metadata.create_all(bind=bind or engine)
