"""Archiving, resetting and restoring gradebook sessions."""

from __future__ import annotations

import logging

from gradedesk.gradebook.session import GradingSession
from gradedesk.gradebook.state import ArchiveSession, ArchiveStats, GradebookState, ScoreDistribution
from gradedesk.grade_store import ArchiveStore, GradeLogError, GradeLogStore
from gradedesk.models import new_archive_id, utcnow

logger = logging.getLogger(__name__)

HIGH_SCORE = 8.0
MID_SCORE = 5.0


class ArchiveNotFoundError(Exception):
    pass


class ArchiveRestoreError(Exception):
    """Raised when replaying an archive into the grade log stops part way.

    The grade log has been cleared and only ``replayed`` of ``total``
    entries were written back; the live gradebook was not replaced.
    """

    def __init__(self, archive_id: str, replayed: int, total: int, reason: str) -> None:
        super().__init__(f"Restore of archive {archive_id} failed after {replayed}/{total} grades: {reason}")
        self.archive_id = archive_id
        self.replayed = replayed
        self.total = total


def compute_stats(state: GradebookState) -> ArchiveStats:
    scores = [entry.score for exercise in state.exercises for entry in exercise.entries.values()]
    distribution = ScoreDistribution(
        high=sum(1 for score in scores if score >= HIGH_SCORE),
        mid=sum(1 for score in scores if MID_SCORE <= score < HIGH_SCORE),
        low=sum(1 for score in scores if score < MID_SCORE),
    )
    return ArchiveStats(
        avg_score=sum(scores) / len(scores) if scores else 0.0,
        total_submissions=len(scores),
        distribution=distribution,
    )


class ArchiveManager:
    def __init__(self, archive_store: ArchiveStore, grade_log: GradeLogStore) -> None:
        self._archives = archive_store
        self._grade_log = grade_log

    def archive(
        self,
        owner: str,
        live_state: GradebookState,
        session_name: str | None = None,
        course_id: str = "general",
    ) -> ArchiveSession:
        timestamp = utcnow()
        snapshot = live_state.model_copy(deep=True)
        archive = ArchiveSession(
            id=new_archive_id(),
            owner=owner,
            session_name=session_name or f"Session {timestamp:%Y-%m-%d %H:%M}",
            course_id=course_id,
            timestamp=timestamp,
            state=snapshot,
            stats=compute_stats(snapshot),
        )
        return self._archives.create(archive)

    def list_sessions(self, owner: str) -> list[ArchiveSession]:
        return sorted(self._archives.list(owner), key=lambda archive: archive.timestamp, reverse=True)

    def clear_all(self, owner: str) -> None:
        self._archives.clear_all(owner)

    def reset(self, session: GradingSession, session_name: str | None = None, course_id: str = "general") -> ArchiveSession:
        """Archive the live gradebook, then wipe the grade log and start over from the seed.

        Nothing is pushed onto the undo history unless the grade log was cleared.
        """
        with session.mutation():
            before = session.gradebook.snapshot()
            archive = self.archive(session.owner, before, session_name=session_name, course_id=course_id)
            self._grade_log.clear(session.owner)
            session.history.push(before)
            session.load(session.seed)
            session.student_code = ""
            session.last_result = None
            session.last_error = None
        logger.info("gradebook reset", extra={"owner": session.owner, "archive_id": archive.id})
        return archive

    def restore(self, session: GradingSession, archive_id: str) -> GradebookState:
        archive = self._archives.get(session.owner, archive_id)
        if archive is None:
            raise ArchiveNotFoundError(f"Archive {archive_id} not found")

        entries = [
            (exercise.id, student_id, entry)
            for exercise in archive.state.exercises
            for student_id, entry in exercise.entries.items()
        ]
        replayed = 0
        with session.mutation():
            try:
                self._grade_log.clear(session.owner)
                for exercise_id, student_id, entry in entries:
                    self._grade_log.upsert(session.owner, exercise_id, student_id, entry.score, entry.feedback)
                    replayed += 1
            except GradeLogError as exc:
                logger.error(
                    "archive restore left grade log partially replayed",
                    extra={"owner": session.owner, "archive_id": archive_id, "replayed": replayed, "total": len(entries)},
                )
                raise ArchiveRestoreError(archive_id, replayed, len(entries), str(exc)) from exc

            session.load(archive.state)
        logger.info("archive restored", extra={"owner": session.owner, "archive_id": archive_id, "replayed": replayed})
        return session.state
