"""Database engine and session helpers."""

from collections.abc import Generator
from pathlib import Path

from sqlmodel import Session, SQLModel, create_engine

from gradedesk.settings import settings


def ensure_dir(path: Path) -> Path:
    """Create directory if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


engine = create_engine(settings.sqlite_url, connect_args={"check_same_thread": False})


def create_db_and_tables() -> None:
    """Create all SQLModel tables if they do not exist."""
    import gradedesk.models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    """Yield a database session for request-scoped dependency injection."""
    with Session(engine) as session:
        yield session
