"""SQLModel ORM models for GradeDesk."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    """Return timezone-aware UTC now timestamp."""
    return datetime.now(timezone.utc)


def new_archive_id() -> str:
    return uuid4().hex


class GradeRecord(SQLModel, table=True):
    """One saved grade, unique per owner, exercise and student."""

    __table_args__ = (UniqueConstraint("owner", "exercise_id", "student_id", name="uq_graderecord_key"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    owner: str = Field(index=True)
    exercise_id: str
    student_id: str
    score: float = 0.0
    feedback: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class ArchiveRecord(SQLModel, table=True):
    id: str = Field(default_factory=new_archive_id, primary_key=True)
    owner: str = Field(index=True)
    session_name: str
    course_id: str = "general"
    state_json: str
    stats_json: str
    timestamp: datetime = Field(default_factory=utcnow)
