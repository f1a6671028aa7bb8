"""Request and response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from gradedesk.gradebook.state import ArchiveSession, GradebookState
from gradedesk.grading.base import GradingResult


class GradebookRead(BaseModel):
    state: GradebookState
    active_exercise_id: str
    selected_student_id: str
    student_code: str
    is_busy: bool
    history_depth: int
    last_result: GradingResult | None = None
    last_error: str | None = None


class SelectionUpdate(BaseModel):
    exercise_id: str | None = None
    student_id: str | None = None
    student_code: str | None = None


class ExerciseUpdate(BaseModel):
    name: str | None = None
    question: str | None = None
    master_solution: str | None = None
    rubric: str | None = None
    custom_instructions: str | None = None
    max_score: float | None = Field(default=None, gt=0)


class EntryUpdate(BaseModel):
    score: float | None = None
    feedback: str | None = None


class StudentUpdate(BaseModel):
    name: str


class GradebookImport(BaseModel):
    state: dict[str, Any] | None = None


class UndoResponse(BaseModel):
    undone: bool
    gradebook: GradebookRead


class ResetRequest(BaseModel):
    session_name: str | None = None
    course_id: str = "general"


class ResetResponse(BaseModel):
    archive: ArchiveSession
    gradebook: GradebookRead


class EvaluateRequest(BaseModel):
    exercise_id: str | None = None
    student_id: str | None = None
    student_code: str | None = None


class EvaluateResponse(BaseModel):
    result: GradingResult
    exercise_id: str
    student_id: str
    selected_student_id: str


class ChatMessage(BaseModel):
    role: str
    text: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    history: list[ChatMessage] = Field(default_factory=list)


class ChatResponse(BaseModel):
    text: str


class GradeSave(BaseModel):
    exercise_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)
    score: float
    feedback: str = ""


class GradeRecordRead(BaseModel):
    owner: str
    exercise_id: str
    student_id: str
    score: float
    feedback: str
    timestamp: datetime
