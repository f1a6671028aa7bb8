from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from gradedesk.gradebook.archive import (
    ArchiveManager,
    ArchiveNotFoundError,
    ArchiveRestoreError,
    compute_stats,
)
from gradedesk.gradebook.reconstruct import reconstruct
from gradedesk.gradebook.session import GradingSession
from gradedesk.gradebook.state import ArchiveSession, GradeEntry, initial_state
from gradedesk.grade_store import GradeLogError, SqlArchiveStore, SqlGradeLogStore


class FailingGradeLog:
    """Grade log that stops accepting writes after ``allowed`` upserts."""

    def __init__(self, inner: SqlGradeLogStore, allowed: int) -> None:
        self._inner = inner
        self._allowed = allowed

    def upsert(self, owner: str, exercise_id: str, student_id: str, score: float, feedback: str) -> None:
        if self._allowed <= 0:
            raise GradeLogError("disk full")
        self._allowed -= 1
        self._inner.upsert(owner, exercise_id, student_id, score, feedback)

    def list(self, owner: str):
        return self._inner.list(owner)

    def clear(self, owner: str) -> None:
        self._inner.clear(owner)


def _session(owner: str = "t1") -> GradingSession:
    seed = initial_state()
    return GradingSession(owner=owner, state=seed.model_copy(deep=True), seed=seed, history_capacity=10)


def _grade(session: GradingSession, log: SqlGradeLogStore, exercise_id: str, student_id: str, score: float, feedback: str) -> None:
    log.upsert(session.owner, exercise_id, student_id, score, feedback)
    session.gradebook.set_entry(exercise_id, student_id, score, feedback)


def test_compute_stats_buckets_scores() -> None:
    state = initial_state()
    state.exercises[0].entries = {
        "student-1": GradeEntry(score=9),
        "student-2": GradeEntry(score=8),
        "student-3": GradeEntry(score=5),
        "student-4": GradeEntry(score=1),
    }

    stats = compute_stats(state)

    assert stats.total_submissions == 4
    assert stats.avg_score == pytest.approx(5.75)
    assert (stats.distribution.high, stats.distribution.mid, stats.distribution.low) == (2, 1, 1)


def test_compute_stats_of_empty_gradebook() -> None:
    stats = compute_stats(initial_state())

    assert stats.total_submissions == 0
    assert stats.avg_score == 0.0


def test_archive_is_a_deep_copy(db_session) -> None:
    log = SqlGradeLogStore(db_session)
    manager = ArchiveManager(SqlArchiveStore(db_session), log)
    session = _session()
    _grade(session, log, "ex-1", "student-1", 7, "fine")

    archive = manager.archive(session.owner, session.state, session_name="Week 1")
    session.gradebook.set_entry("ex-1", "student-1", 2, "changed")

    stored = manager.list_sessions("t1")[0]
    assert stored.id == archive.id
    assert stored.session_name == "Week 1"
    assert stored.state.exercises[0].entries["student-1"] == GradeEntry(score=7, feedback="fine")
    assert stored.stats.total_submissions == 1


def test_list_sessions_newest_first_and_scoped_to_owner(db_session) -> None:
    store = SqlArchiveStore(db_session)
    manager = ArchiveManager(store, SqlGradeLogStore(db_session))
    base = datetime(2024, 5, 1, tzinfo=timezone.utc)
    for offset, name in [(0, "old"), (2, "newest"), (1, "middle")]:
        store.create(
            ArchiveSession(id=f"a-{name}", owner="t1", session_name=name, timestamp=base + timedelta(days=offset), state=initial_state())
        )
    store.create(ArchiveSession(id="a-other", owner="t2", session_name="other", timestamp=base, state=initial_state()))

    names = [archive.session_name for archive in manager.list_sessions("t1")]

    assert names == ["newest", "middle", "old"]
    assert store.get("t1", "a-other") is None


def test_reset_archives_then_clears_log_and_reseeds(db_session) -> None:
    log = SqlGradeLogStore(db_session)
    manager = ArchiveManager(SqlArchiveStore(db_session), log)
    session = _session()
    _grade(session, log, "ex-1", "student-1", 9, "great")
    session.student_code = "print(1)"
    before = session.gradebook.snapshot()

    archive = manager.reset(session, session_name="Midterm")

    assert archive.state == before
    assert log.list("t1") == []
    assert session.state == session.seed
    assert session.student_code == ""
    assert session.selected_student_id == "student-1"
    assert len(session.history) == 1

    session.undo()
    assert session.state == before


def test_restore_round_trip_matches_reconstruction(db_session) -> None:
    log = SqlGradeLogStore(db_session)
    manager = ArchiveManager(SqlArchiveStore(db_session), log)
    session = _session()
    _grade(session, log, "ex-1", "student-1", 8, "good")
    _grade(session, log, "ex-1", "student-4", 3.5, "incomplete")
    saved = session.gradebook.snapshot()

    archive = manager.reset(session)
    _grade(session, log, "ex-1", "student-2", 6, "after reset")

    restored = manager.restore(session, archive.id)

    assert restored == saved
    assert session.selected_student_id == "student-1"
    rebuilt = reconstruct(log.list("t1"), session.seed)
    assert rebuilt == saved


def test_restore_unknown_archive_raises(db_session) -> None:
    manager = ArchiveManager(SqlArchiveStore(db_session), SqlGradeLogStore(db_session))

    with pytest.raises(ArchiveNotFoundError):
        manager.restore(_session(), "missing")


def test_restore_other_owners_archive_is_not_found(db_session) -> None:
    manager = ArchiveManager(SqlArchiveStore(db_session), SqlGradeLogStore(db_session))
    archive = manager.archive("t2", initial_state())

    with pytest.raises(ArchiveNotFoundError):
        manager.restore(_session("t1"), archive.id)


def test_partial_restore_reports_progress_and_keeps_live_state(db_session) -> None:
    log = SqlGradeLogStore(db_session)
    session = _session()
    for index in range(1, 5):
        _grade(session, log, "ex-1", f"student-{index}", index, "x")
    archive = ArchiveManager(SqlArchiveStore(db_session), log).reset(session)
    live = session.gradebook.snapshot()

    manager = ArchiveManager(SqlArchiveStore(db_session), FailingGradeLog(log, allowed=2))
    with pytest.raises(ArchiveRestoreError) as excinfo:
        manager.restore(session, archive.id)

    assert excinfo.value.replayed == 2
    assert excinfo.value.total == 4
    assert session.state == live
    assert len(log.list("t1")) == 2


def test_clear_all_only_touches_owner(db_session) -> None:
    manager = ArchiveManager(SqlArchiveStore(db_session), SqlGradeLogStore(db_session))
    manager.archive("t1", initial_state())
    manager.archive("t2", initial_state())

    manager.clear_all("t1")

    assert manager.list_sessions("t1") == []
    assert len(manager.list_sessions("t2")) == 1


class UnclearableGradeLog(FailingGradeLog):
    def clear(self, owner: str) -> None:
        raise GradeLogError("database is locked")


def test_reset_that_cannot_clear_log_keeps_live_state_and_history(db_session) -> None:
    log = SqlGradeLogStore(db_session)
    session = _session()
    _grade(session, log, "ex-1", "student-1", 9, "great")
    before = session.gradebook.snapshot()
    manager = ArchiveManager(SqlArchiveStore(db_session), UnclearableGradeLog(log, allowed=0))

    with pytest.raises(GradeLogError):
        manager.reset(session)

    assert len(session.history) == 0
    assert session.state == before
    assert len(log.list("t1")) == 1
    assert len(manager.list_sessions("t1")) == 1
