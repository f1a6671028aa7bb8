"""Request-scoped dependencies shared by the routers."""

from fastapi import Depends
from sqlmodel import Session

from gradedesk.auth import get_owner
from gradedesk.db import get_session
from gradedesk.gradebook.archive import ArchiveManager
from gradedesk.gradebook.session import GradingSession, get_session_registry
from gradedesk.grade_store import SqlArchiveStore, SqlGradeLogStore
from gradedesk.schemas import GradebookRead


def get_grade_log(session: Session = Depends(get_session)) -> SqlGradeLogStore:
    return SqlGradeLogStore(session)


def get_archive_manager(
    session: Session = Depends(get_session),
    grade_log: SqlGradeLogStore = Depends(get_grade_log),
) -> ArchiveManager:
    return ArchiveManager(SqlArchiveStore(session), grade_log)


def get_grading_session(
    owner: str = Depends(get_owner),
    grade_log: SqlGradeLogStore = Depends(get_grade_log),
) -> GradingSession:
    return get_session_registry().get_or_start(owner, grade_log)


def gradebook_read(session: GradingSession) -> GradebookRead:
    with session.mutation():
        return GradebookRead(
            state=session.state,
            active_exercise_id=session.active_exercise().id,
            selected_student_id=session.selected_student().id,
            student_code=session.student_code,
            is_busy=session.is_busy,
            history_depth=len(session.history),
            last_result=session.last_result,
            last_error=session.last_error,
        )
