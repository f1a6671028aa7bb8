"""Rebuild a gradebook from the flat grade log."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from gradedesk.gradebook.state import DEFAULT_MAX_SCORE, Exercise, GradeEntry, GradebookState, Student

logger = logging.getLogger(__name__)


class GradeLike(Protocol):
    exercise_id: str
    student_id: str
    score: float
    feedback: str


def placeholder_exercise(exercise_id: str) -> Exercise:
    return Exercise(id=exercise_id, name=f"Restored {exercise_id}", max_score=DEFAULT_MAX_SCORE)


def placeholder_student(student_id: str) -> Student:
    return Student(id=student_id, name=f"Student {student_id}")


def reconstruct(records: Iterable[GradeLike], seed: GradebookState) -> GradebookState | None:
    """Replay grade records on top of a copy of ``seed``.

    Returns ``None`` when there is nothing to replay so the caller can keep
    its pristine seed. Replaying a record twice gives the same result as
    replaying it once.
    """
    records = list(records)
    if not records:
        return None

    exercises = [ex.model_copy(deep=True) for ex in seed.exercises]
    students = [s.model_copy(deep=True) for s in seed.students]
    exercise_by_id = {ex.id: ex for ex in exercises}
    student_ids = {s.id for s in students}

    skipped = 0
    for record in records:
        exercise_id = str(getattr(record, "exercise_id", "") or "")
        student_id = str(getattr(record, "student_id", "") or "")
        if not exercise_id or not student_id:
            skipped += 1
            continue

        exercise = exercise_by_id.get(exercise_id)
        if exercise is None:
            exercise = placeholder_exercise(exercise_id)
            exercise_by_id[exercise_id] = exercise
            exercises.append(exercise)

        if student_id not in student_ids:
            student_ids.add(student_id)
            students.append(placeholder_student(student_id))

        feedback = getattr(record, "feedback", "") or ""
        exercise.entries[student_id] = GradeEntry(score=float(getattr(record, "score", 0) or 0), feedback=str(feedback))

    if skipped:
        logger.warning("grade log records skipped during reconstruction", extra={"skipped": skipped})

    return GradebookState(students=students, exercises=exercises)
