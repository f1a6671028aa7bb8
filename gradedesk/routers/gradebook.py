"""Gradebook editing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from gradedesk.deps import get_archive_manager, get_grade_log, get_grading_session, gradebook_read
from gradedesk.gradebook.archive import ArchiveManager
from gradedesk.gradebook.session import GradingSession, SessionBusyError
from gradedesk.grade_store import GradeLogError, SqlGradeLogStore
from gradedesk.schemas import (
    EntryUpdate,
    ExerciseUpdate,
    GradebookImport,
    GradebookRead,
    ResetRequest,
    ResetResponse,
    SelectionUpdate,
    StudentUpdate,
    UndoResponse,
)

router = APIRouter(prefix="/gradebook", tags=["gradebook"])
logger = logging.getLogger(__name__)


@router.get("", response_model=GradebookRead)
def get_gradebook(session: GradingSession = Depends(get_grading_session)) -> GradebookRead:
    return gradebook_read(session)


@router.put("/selection", response_model=GradebookRead)
def update_selection(payload: SelectionUpdate, session: GradingSession = Depends(get_grading_session)) -> GradebookRead:
    with session.mutation():
        session.select(exercise_id=payload.exercise_id, student_id=payload.student_id)
        if payload.student_code is not None:
            session.student_code = payload.student_code
    return gradebook_read(session)


@router.post("/exercises", response_model=GradebookRead, status_code=status.HTTP_201_CREATED)
def add_exercise(session: GradingSession = Depends(get_grading_session)) -> GradebookRead:
    exercise = session.add_exercise()
    logger.info("exercise added", extra={"owner": session.owner, "exercise_id": exercise.id})
    return gradebook_read(session)


@router.patch("/exercises/{exercise_id}", response_model=GradebookRead)
def update_exercise(
    exercise_id: str,
    payload: ExerciseUpdate,
    session: GradingSession = Depends(get_grading_session),
) -> GradebookRead:
    with session.mutation():
        for field, value in payload.model_dump(exclude_none=True).items():
            session.gradebook.update_exercise_field(exercise_id, field, value)
    return gradebook_read(session)


@router.patch("/exercises/{exercise_id}/entries/{student_id}", response_model=GradebookRead)
def update_entry(
    exercise_id: str,
    student_id: str,
    payload: EntryUpdate,
    session: GradingSession = Depends(get_grading_session),
    grade_log: SqlGradeLogStore = Depends(get_grade_log),
) -> GradebookRead:
    with session.mutation():
        exercise = session.gradebook.exercise(exercise_id)
        if exercise is None or session.gradebook.student(student_id) is None:
            return gradebook_read(session)

        entry = exercise.entry_for(student_id)
        score = entry.score if payload.score is None else payload.score
        feedback = entry.feedback if payload.feedback is None else payload.feedback
        try:
            grade_log.upsert(session.owner, exercise_id, student_id, score, feedback)
        except GradeLogError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        session.gradebook.set_entry(exercise_id, student_id, score, feedback)
    return gradebook_read(session)


@router.post("/students", response_model=GradebookRead, status_code=status.HTTP_201_CREATED)
def add_student(session: GradingSession = Depends(get_grading_session)) -> GradebookRead:
    student = session.add_student()
    logger.info("student added", extra={"owner": session.owner, "student_id": student.id})
    return gradebook_read(session)


@router.patch("/students/{student_id}", response_model=GradebookRead)
def update_student(
    student_id: str,
    payload: StudentUpdate,
    session: GradingSession = Depends(get_grading_session),
) -> GradebookRead:
    with session.mutation():
        session.gradebook.update_student_name(student_id, payload.name)
    return gradebook_read(session)


@router.post("/undo", response_model=UndoResponse)
def undo(session: GradingSession = Depends(get_grading_session)) -> UndoResponse:
    undone = session.undo()
    return UndoResponse(undone=undone, gradebook=gradebook_read(session))


@router.post("/import", response_model=GradebookRead)
def import_gradebook(payload: GradebookImport, session: GradingSession = Depends(get_grading_session)) -> GradebookRead:
    session.import_state(payload.state)
    return gradebook_read(session)


@router.post("/reset", response_model=ResetResponse)
def reset_gradebook(
    payload: ResetRequest,
    session: GradingSession = Depends(get_grading_session),
    manager: ArchiveManager = Depends(get_archive_manager),
) -> ResetResponse:
    try:
        with session.busy():
            archive = manager.reset(session, session_name=payload.session_name, course_id=payload.course_id)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except GradeLogError as exc:
        logger.exception("gradebook reset failed", extra={"owner": session.owner})
        raise HTTPException(status_code=500, detail=f"Reset failed: {exc}") from exc
    return ResetResponse(archive=archive, gradebook=gradebook_read(session))
