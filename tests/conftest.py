from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _reset_session_registry() -> None:
    from gradedesk.gradebook.session import reset_session_registry

    reset_session_registry()
    yield
    reset_session_registry()


@pytest.fixture
def engine(tmp_path, monkeypatch):
    import gradedesk.models  # noqa: F401
    from gradedesk import db
    from gradedesk.settings import settings

    monkeypatch.setattr(settings, "data_dir", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "sqlite_path", str(tmp_path / "test.db"))

    test_engine = create_engine(settings.sqlite_url, connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(test_engine)
    monkeypatch.setattr(db, "engine", test_engine)
    return test_engine


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session
