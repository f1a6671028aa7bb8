"""Run one grading request against the active exercise and apply the result."""

from __future__ import annotations

import logging

from gradedesk.gradebook.session import GradingSession
from gradedesk.gradebook.state import Exercise
from gradedesk.grading.base import Grader, GradingInputs, GradingResult
from gradedesk.grade_store import GradeLogError, GradeLogStore

logger = logging.getLogger(__name__)


class MissingContextError(ValueError):
    """Raised when there is no student code to evaluate or the target cell is gone."""


class UnknownExerciseError(LookupError):
    """Raised when the caller names an exercise the gradebook does not have."""


def build_inputs(exercise: Exercise, student_code: str) -> GradingInputs:
    return GradingInputs(
        question=exercise.question,
        master_solution=exercise.master_solution,
        rubric=exercise.rubric,
        custom_instructions=exercise.custom_instructions,
        student_code=student_code,
    )


class EvaluationOrchestrator:
    """Stateless between calls; the caller holds the session's busy flag.

    The grader runs outside the session's mutation lock. The undo snapshot
    is taken under the lock right before the result is written.
    """

    def __init__(self, grader: Grader, grade_log: GradeLogStore) -> None:
        self._grader = grader
        self._grade_log = grade_log

    def evaluate(
        self,
        session: GradingSession,
        student_code: str | None = None,
        student_id: str | None = None,
        exercise_id: str | None = None,
    ) -> GradingResult:
        with session.mutation():
            code = session.student_code if student_code is None else student_code
            if not code.strip():
                raise MissingContextError("Missing student code for evaluation.")

            exercise = session.gradebook.exercise(exercise_id) if exercise_id else session.active_exercise()
            if exercise is None:
                raise UnknownExerciseError(f"Unknown exercise '{exercise_id}'.")
            exercise_id = exercise.id
            target_student_id = student_id or session.selected_student().id
            if session.gradebook.student(target_student_id) is None:
                raise MissingContextError(f"Unknown student '{target_student_id}'.")
            inputs = build_inputs(exercise, code)

        try:
            result = self._grader.grade(inputs)
        except Exception as exc:
            session.last_error = str(exc)
            logger.warning(
                "evaluation failed",
                extra={"owner": session.owner, "exercise_id": exercise_id, "student_id": target_student_id},
            )
            raise

        with session.mutation():
            if session.gradebook.exercise(exercise_id) is None or session.gradebook.student(target_student_id) is None:
                session.last_error = "The graded exercise or student was removed while grading."
                raise MissingContextError(session.last_error)

            try:
                self._grade_log.upsert(session.owner, exercise_id, target_student_id, result.score, result.feedback)
            except GradeLogError as exc:
                session.last_error = str(exc)
                raise

            session.history.push(session.state)
            session.gradebook.set_entry(exercise_id, target_student_id, result.score, result.feedback)
            session.student_code = ""
            next_student_id = session.gradebook.next_student_id(target_student_id)
            if next_student_id is not None:
                session.selected_student_id = next_student_id
            session.last_result = result
            session.last_error = None

        logger.info(
            "evaluation applied",
            extra={"owner": session.owner, "exercise_id": exercise_id, "student_id": target_student_id, "score": result.score},
        )
        return result
