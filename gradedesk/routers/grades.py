"""Grade log endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from gradedesk.auth import get_owner
from gradedesk.deps import get_grade_log, get_grading_session
from gradedesk.gradebook.session import GradingSession
from gradedesk.grade_store import GradeLogError, SqlGradeLogStore
from gradedesk.schemas import GradeRecordRead, GradeSave

router = APIRouter(prefix="/grades", tags=["grades"])
logger = logging.getLogger(__name__)


@router.post("/save")
def save_grade(
    payload: GradeSave,
    session: GradingSession = Depends(get_grading_session),
    grade_log: SqlGradeLogStore = Depends(get_grade_log),
) -> dict[str, bool]:
    try:
        grade_log.upsert(session.owner, payload.exercise_id, payload.student_id, payload.score, payload.feedback)
    except GradeLogError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    with session.mutation():
        if session.gradebook.exercise(payload.exercise_id) is None or session.gradebook.student(payload.student_id) is None:
            logger.info(
                "grade saved for ids outside the live gradebook",
                extra={"owner": session.owner, "exercise_id": payload.exercise_id, "student_id": payload.student_id},
            )
        else:
            session.gradebook.set_entry(payload.exercise_id, payload.student_id, payload.score, payload.feedback)
    return {"success": True}


@router.get("", response_model=list[GradeRecordRead])
def list_grades(
    owner: str = Depends(get_owner),
    grade_log: SqlGradeLogStore = Depends(get_grade_log),
) -> list[GradeRecordRead]:
    try:
        rows = grade_log.list(owner)
    except GradeLogError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return [
        GradeRecordRead(
            owner=row.owner,
            exercise_id=row.exercise_id,
            student_id=row.student_id,
            score=row.score,
            feedback=row.feedback,
            timestamp=row.timestamp,
        )
        for row in rows
    ]
