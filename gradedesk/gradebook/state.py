"""In-memory gradebook model and the operations the grading UI performs on it."""

from __future__ import annotations

import itertools
import logging
import time
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCORE = 10.0

EXERCISE_TEXT_FIELDS = ("name", "question", "master_solution", "rubric", "custom_instructions")
EXERCISE_FIELDS = EXERCISE_TEXT_FIELDS + ("max_score",)

EntryField = Literal["score", "feedback"]

_id_counter = itertools.count(1)


class Student(BaseModel):
    id: str = Field(min_length=1)
    name: str


class GradeEntry(BaseModel):
    score: float = 0.0
    feedback: str = ""


class Exercise(BaseModel):
    id: str = Field(min_length=1)
    name: str
    max_score: float = Field(default=DEFAULT_MAX_SCORE, gt=0)
    question: str = ""
    master_solution: str = ""
    rubric: str = ""
    custom_instructions: str = ""
    entries: dict[str, GradeEntry] = Field(default_factory=dict)

    def entry_for(self, student_id: str) -> GradeEntry:
        """Return the stored entry or a zeroed default without storing it."""
        return self.entries.get(student_id) or GradeEntry()


class GradebookState(BaseModel):
    students: list[Student]
    exercises: list[Exercise]


class ScoreDistribution(BaseModel):
    high: int = 0
    mid: int = 0
    low: int = 0


class ArchiveStats(BaseModel):
    avg_score: float = 0.0
    total_submissions: int = 0
    distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)


class ArchiveSession(BaseModel):
    id: str
    owner: str
    session_name: str
    course_id: str = "general"
    timestamp: datetime
    state: GradebookState
    stats: ArchiveStats = Field(default_factory=ArchiveStats)


def initial_state(student_count: int = 13) -> GradebookState:
    """Build the seed gradebook used when nothing is persisted."""
    return GradebookState(
        students=[Student(id=f"student-{i}", name=f"Student {i}") for i in range(1, student_count + 1)],
        exercises=[Exercise(id="ex-1", name="Exercise 1")],
    )


def new_id(prefix: str, taken: set[str]) -> str:
    """Return a timestamp and counter based id that is not in ``taken``."""
    while True:
        candidate = f"{prefix}-{time.time_ns() // 1_000_000}-{next(_id_counter)}"
        if candidate not in taken:
            return candidate


_students_adapter = TypeAdapter(list[Student])
_exercises_adapter = TypeAdapter(list[Exercise])


def _unique_by_id(items: list[Any]) -> list[Any]:
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def _parse_sequence(adapter: TypeAdapter, raw: object, label: str) -> list[Any] | None:
    if not isinstance(raw, list) or not raw:
        return None
    try:
        parsed = adapter.validate_python(raw)
    except ValidationError as exc:
        logger.warning("gradebook state rejected", extra={"part": label, "errors": exc.error_count()})
        return None
    return _unique_by_id(parsed)


def validate_state(raw: object, seed: GradebookState | None = None) -> GradebookState:
    """Repair an externally sourced gradebook.

    Students and exercises are checked independently; a part that is missing,
    empty or malformed is replaced by the seed's copy. Never raises.
    """
    seed = seed or initial_state()
    if isinstance(raw, GradebookState):
        raw = raw.model_dump()
    data = raw if isinstance(raw, dict) else {}

    students = _parse_sequence(_students_adapter, data.get("students"), "students")
    exercises = _parse_sequence(_exercises_adapter, data.get("exercises"), "exercises")
    return GradebookState(
        students=students if students is not None else [s.model_copy(deep=True) for s in seed.students],
        exercises=exercises if exercises is not None else [e.model_copy(deep=True) for e in seed.exercises],
    )


class Gradebook:
    """Mutable owner of the live ``GradebookState``.

    Every mutator computes the replacement object first and assigns it in a
    single step. Unknown ids are ignored.
    """

    def __init__(self, state: GradebookState) -> None:
        self.state = state

    # lookups

    def exercise(self, exercise_id: str) -> Exercise | None:
        return next((ex for ex in self.state.exercises if ex.id == exercise_id), None)

    def student(self, student_id: str) -> Student | None:
        return next((s for s in self.state.students if s.id == student_id), None)

    def _exercise_index(self, exercise_id: str) -> int | None:
        return next((i for i, ex in enumerate(self.state.exercises) if ex.id == exercise_id), None)

    def next_student_id(self, student_id: str) -> str | None:
        ids = [s.id for s in self.state.students]
        if student_id not in ids:
            return None
        position = ids.index(student_id)
        if position + 1 < len(ids):
            return ids[position + 1]
        return None

    # snapshots

    def snapshot(self) -> GradebookState:
        return self.state.model_copy(deep=True)

    def replace(self, state: GradebookState) -> None:
        self.state = state.model_copy(deep=True)

    # mutators

    def _replace_exercise(self, index: int, exercise: Exercise) -> None:
        exercises = list(self.state.exercises)
        exercises[index] = exercise
        self.state = GradebookState(students=self.state.students, exercises=exercises)

    def update_exercise_field(self, exercise_id: str, field: str, value: Any) -> None:
        if field not in EXERCISE_FIELDS:
            raise ValueError(f"Unknown exercise field '{field}'. Use one of: {', '.join(EXERCISE_FIELDS)}")
        index = self._exercise_index(exercise_id)
        if index is None:
            return
        if field == "max_score":
            value = float(value)
            if value <= 0:
                raise ValueError("max_score must be positive")
        else:
            value = str(value)
        self._replace_exercise(index, self.state.exercises[index].model_copy(update={field: value}))

    def update_max_score(self, exercise_id: str, max_score: float) -> None:
        self.update_exercise_field(exercise_id, "max_score", max_score)

    def update_entry(self, exercise_id: str, student_id: str, field: EntryField, value: Any) -> None:
        if field not in ("score", "feedback"):
            raise ValueError(f"Unknown entry field '{field}'. Use one of: score, feedback")
        index = self._exercise_index(exercise_id)
        if index is None or self.student(student_id) is None:
            return
        exercise = self.state.exercises[index]
        value = float(value) if field == "score" else str(value)
        entry = exercise.entry_for(student_id).model_copy(update={field: value})
        self._replace_exercise(index, exercise.model_copy(update={"entries": {**exercise.entries, student_id: entry}}))

    def set_entry(self, exercise_id: str, student_id: str, score: float, feedback: str) -> None:
        index = self._exercise_index(exercise_id)
        if index is None or self.student(student_id) is None:
            return
        exercise = self.state.exercises[index]
        entry = GradeEntry(score=float(score), feedback=feedback)
        self._replace_exercise(index, exercise.model_copy(update={"entries": {**exercise.entries, student_id: entry}}))

    def update_student_name(self, student_id: str, name: str) -> None:
        students = [s.model_copy(update={"name": name}) if s.id == student_id else s for s in self.state.students]
        self.state = GradebookState(students=students, exercises=self.state.exercises)

    def add_exercise(self) -> Exercise:
        exercises = self.state.exercises
        previous = exercises[-1] if exercises else None
        exercise = Exercise(
            id=new_id("ex", {ex.id for ex in exercises}),
            name=f"Exercise {len(exercises) + 1}",
            rubric=previous.rubric if previous else "",
            custom_instructions=previous.custom_instructions if previous else "",
        )
        self.state = GradebookState(students=self.state.students, exercises=[*exercises, exercise])
        return exercise

    def add_student(self) -> Student:
        students = self.state.students
        student = Student(id=new_id("student", {s.id for s in students}), name=f"Student {len(students) + 1}")
        self.state = GradebookState(students=[*students, student], exercises=self.state.exercises)
        return student
