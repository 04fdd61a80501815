"""Database connection and session management."""
from collections.abc import Generator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from sessionguard.config import get_settings

Base = declarative_base()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine usable from any threadpool worker."""
    url = make_url(database_url)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        # SQLite requires check_same_thread=False for FastAPI
        connect_args = {"check_same_thread": False}
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args=connect_args, echo=echo)


settings = get_settings()

engine = build_engine(settings.database_url, echo=settings.debug)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency that provides a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

