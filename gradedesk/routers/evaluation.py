"""Evaluation and assistant chat endpoints."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from gradedesk.deps import get_grade_log, get_grading_session
from gradedesk.gradebook.evaluate import EvaluationOrchestrator, MissingContextError, UnknownExerciseError
from gradedesk.gradebook.session import GradingSession, SessionBusyError
from gradedesk.grade_store import GradeLogError, SqlGradeLogStore
from gradedesk.grading.base import ChatClient, ChatTurn, Grader
from gradedesk.grading.openai_grader import OpenAIRequestError, get_chat_client, get_grader
from gradedesk.schemas import ChatRequest, ChatResponse, EvaluateRequest, EvaluateResponse

router = APIRouter(tags=["evaluation"])
logger = logging.getLogger(__name__)


def _model_error(request_id: str, stage: str, exc: OpenAIRequestError) -> JSONResponse:
    if exc.rate_limited:
        status_code = 429
        error_kind = "rate_limited"
        detail = "The grading model is rate limited or out of quota. Wait a minute and retry."
    else:
        status_code = 504 if exc.status_code == 504 else 502
        error_kind = "grading_failed"
        detail = "The grading model request failed. Check the model configuration and retry."
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": detail,
            "error_kind": error_kind,
            "request_id": request_id,
            "stage": stage,
            "openai_status": exc.status_code,
            "openai_error": exc.body[:2000],
        },
    )


@router.post("/evaluate", response_model=EvaluateResponse)
def evaluate(
    payload: EvaluateRequest,
    session: GradingSession = Depends(get_grading_session),
    grade_log: SqlGradeLogStore = Depends(get_grade_log),
    grader: Grader = Depends(get_grader),
):
    request_id = str(uuid.uuid4())
    stage = "select"
    orchestrator = EvaluationOrchestrator(grader, grade_log)

    def _err(status_code: int, detail: str, error_kind: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"detail": detail, "error_kind": error_kind, "request_id": request_id, "stage": stage},
        )

    try:
        with session.busy():
            with session.mutation():
                if payload.exercise_id is not None and session.gradebook.exercise(payload.exercise_id) is None:
                    raise UnknownExerciseError(f"Exercise '{payload.exercise_id}' not found.")
                session.select(exercise_id=payload.exercise_id)
                exercise_id = session.active_exercise().id
                student_id = payload.student_id or session.selected_student().id
            stage = "grade"
            result = orchestrator.evaluate(
                session,
                student_code=payload.student_code,
                student_id=student_id,
                exercise_id=exercise_id,
            )
    except SessionBusyError as exc:
        return _err(409, str(exc), "busy")
    except UnknownExerciseError as exc:
        return _err(404, str(exc), "unknown_exercise")
    except MissingContextError as exc:
        return _err(400, str(exc), "missing_context")
    except OpenAIRequestError as exc:
        return _model_error(request_id, stage, exc)
    except GradeLogError as exc:
        logger.exception("evaluation could not be saved", extra={"owner": session.owner, "request_id": request_id})
        return _err(500, str(exc), "storage_failed")

    return EvaluateResponse(
        result=result,
        exercise_id=exercise_id,
        student_id=student_id,
        selected_student_id=session.selected_student_id,
    )


@router.post("/chat", response_model=ChatResponse)
def chat(payload: ChatRequest, client: ChatClient = Depends(get_chat_client)):
    request_id = str(uuid.uuid4())
    history = [ChatTurn(role=turn.role, text=turn.text) for turn in payload.history]
    try:
        text = client.reply(payload.message, history)
    except OpenAIRequestError as exc:
        return _model_error(request_id, "chat", exc)
    return ChatResponse(text=text)
