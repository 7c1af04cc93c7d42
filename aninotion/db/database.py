from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
import os
from typing import Optional
from functools import lru_cache

# Database files per environment
SQLITE_DEV_DB = "sqlite:///./aninotion-dev.db"
SQLITE_TEST_DB = "sqlite:///./aninotion-test.db"
SQLITE_PROD_DB = "sqlite:///./aninotion.db"

Base = declarative_base()


def database_url() -> str:
    env = os.getenv("APP_ENV", "development")
    if env == "test":
        return SQLITE_TEST_DB
    if env == "production":
        return os.getenv("DATABASE_URL", SQLITE_PROD_DB)
    return SQLITE_DEV_DB


def make_engine(url: str):
    """Engine for ``url``; SQLite connections are shared across threads"""
    connect_args = {}
    if url.startswith("sqlite"):
        # wait on the write lock instead of failing when readers count views concurrently
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args)


@lru_cache()
def get_engine():
    return make_engine(database_url())


def get_session_maker():
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine())


def get_session():
    """Yield a session per request"""
    SessionLocal = get_session_maker()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def create_tables(db_engine: Optional[object] = None):
    """Create all tables.

    Args:
        db_engine: engine to use, defaults to the environment's engine
    """
    # register every model on Base.metadata
    from aninotion.models import category, comment, post, post_tag, user  # noqa: F401

    engine = db_engine or get_engine()
    Base.metadata.create_all(bind=engine)
