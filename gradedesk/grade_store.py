"""Persistence for the grade log and archived gradebook sessions."""

from __future__ import annotations

import json
from typing import Protocol

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, delete, select

from gradedesk.gradebook.state import ArchiveSession, ArchiveStats, GradebookState
from gradedesk.models import ArchiveRecord, GradeRecord, utcnow


class GradeLogError(Exception):
    """Raised when the grade log or archive table cannot be read or written."""


class GradeLogStore(Protocol):
    def upsert(self, owner: str, exercise_id: str, student_id: str, score: float, feedback: str) -> None:
        """Insert or replace the record keyed by owner, exercise and student."""

    def list(self, owner: str) -> list[GradeRecord]:
        """Return every record saved by ``owner``."""

    def clear(self, owner: str) -> None:
        """Delete every record saved by ``owner``."""


class ArchiveStore(Protocol):
    def list(self, owner: str) -> list[ArchiveSession]:
        """Return archived sessions in no particular order."""

    def create(self, archive: ArchiveSession) -> ArchiveSession:
        """Persist a new archive."""

    def get(self, owner: str, archive_id: str) -> ArchiveSession | None:
        """Return one archive or ``None``."""

    def clear_all(self, owner: str) -> None:
        """Delete every archive of ``owner``."""


class SqlGradeLogStore:
    """Grade log backed by the ``graderecord`` table."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(self, owner: str, exercise_id: str, student_id: str, score: float, feedback: str) -> None:
        stmt = sqlite_insert(GradeRecord).values(
            owner=owner,
            exercise_id=exercise_id,
            student_id=student_id,
            score=float(score),
            feedback=feedback,
            timestamp=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["owner", "exercise_id", "student_id"],
            set_={
                "score": stmt.excluded.score,
                "feedback": stmt.excluded.feedback,
                "timestamp": stmt.excluded.timestamp,
            },
        )
        try:
            self._session.exec(stmt)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise GradeLogError(f"Failed to save grade for {exercise_id}/{student_id}: {exc}") from exc

    def list(self, owner: str) -> list[GradeRecord]:
        try:
            rows = self._session.exec(select(GradeRecord).where(GradeRecord.owner == owner).order_by(GradeRecord.id)).all()
        except SQLAlchemyError as exc:
            raise GradeLogError(f"Failed to load grades: {exc}") from exc
        return list(rows)

    def clear(self, owner: str) -> None:
        try:
            self._session.exec(delete(GradeRecord).where(GradeRecord.owner == owner))
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise GradeLogError(f"Failed to clear grades: {exc}") from exc


def _archive_from_row(row: ArchiveRecord) -> ArchiveSession:
    return ArchiveSession(
        id=row.id,
        owner=row.owner,
        session_name=row.session_name,
        course_id=row.course_id,
        timestamp=row.timestamp,
        state=GradebookState.model_validate_json(row.state_json),
        stats=ArchiveStats.model_validate(json.loads(row.stats_json)),
    )


class SqlArchiveStore:
    """Archive collection backed by the ``archiverecord`` table."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def list(self, owner: str) -> list[ArchiveSession]:
        try:
            rows = self._session.exec(select(ArchiveRecord).where(ArchiveRecord.owner == owner)).all()
        except SQLAlchemyError as exc:
            raise GradeLogError(f"Failed to load archives: {exc}") from exc
        return [_archive_from_row(row) for row in rows]

    def create(self, archive: ArchiveSession) -> ArchiveSession:
        row = ArchiveRecord(
            id=archive.id,
            owner=archive.owner,
            session_name=archive.session_name,
            course_id=archive.course_id,
            state_json=archive.state.model_dump_json(),
            stats_json=archive.stats.model_dump_json(),
            timestamp=archive.timestamp,
        )
        try:
            self._session.add(row)
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise GradeLogError(f"Failed to archive session: {exc}") from exc
        return archive

    def get(self, owner: str, archive_id: str) -> ArchiveSession | None:
        row = self._session.get(ArchiveRecord, archive_id)
        if row is None or row.owner != owner:
            return None
        return _archive_from_row(row)

    def clear_all(self, owner: str) -> None:
        try:
            self._session.exec(delete(ArchiveRecord).where(ArchiveRecord.owner == owner))
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise GradeLogError(f"Failed to clear archives: {exc}") from exc
