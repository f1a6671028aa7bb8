"""Per-owner grading session context."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from gradedesk.gradebook.history import UndoHistory
from gradedesk.gradebook.reconstruct import reconstruct
from gradedesk.gradebook.state import Exercise, Gradebook, GradebookState, Student, initial_state, validate_state
from gradedesk.grading.base import GradingResult
from gradedesk.grade_store import GradeLogStore
from gradedesk.settings import settings

logger = logging.getLogger(__name__)


class SessionBusyError(Exception):
    """Raised when evaluate, reset or restore starts while another of them is running."""


class GradingSession:
    """Live gradebook plus the selection and editor state of one lecturer."""

    def __init__(self, owner: str, state: GradebookState, seed: GradebookState, history_capacity: int) -> None:
        self.owner = owner
        self.seed = seed
        self.gradebook = Gradebook(state)
        self.history = UndoHistory(history_capacity)
        self.active_exercise_id = state.exercises[0].id
        self.selected_student_id = state.students[0].id
        self.student_code = ""
        self.last_result: GradingResult | None = None
        self.last_error: str | None = None
        self._busy = threading.Lock()
        self._mutex = threading.RLock()

    @property
    def state(self) -> GradebookState:
        return self.gradebook.state

    @property
    def is_busy(self) -> bool:
        return self._busy.locked()

    @contextmanager
    def busy(self) -> Iterator[None]:
        """Claim the session for a long-running action; a second claim fails fast."""
        if not self._busy.acquire(blocking=False):
            raise SessionBusyError("Another evaluation, reset or restore is running for this gradebook")
        try:
            yield
        finally:
            self._busy.release()

    @contextmanager
    def mutation(self) -> Iterator[None]:
        """Serialize changes to the live gradebook, history and selection."""
        with self._mutex:
            yield

    def active_exercise(self) -> Exercise:
        return self.gradebook.exercise(self.active_exercise_id) or self.state.exercises[0]

    def selected_student(self) -> Student:
        return self.gradebook.student(self.selected_student_id) or self.state.students[0]

    def select(self, exercise_id: str | None = None, student_id: str | None = None) -> None:
        with self._mutex:
            if exercise_id is not None and self.gradebook.exercise(exercise_id) is not None:
                self.active_exercise_id = exercise_id
            if student_id is not None and self.gradebook.student(student_id) is not None:
                self.selected_student_id = student_id

    def reset_selection(self) -> None:
        self.active_exercise_id = self.state.exercises[0].id
        self.selected_student_id = self.state.students[0].id

    def _repair_selection(self) -> None:
        if self.gradebook.exercise(self.active_exercise_id) is None:
            self.active_exercise_id = self.state.exercises[0].id
        if self.gradebook.student(self.selected_student_id) is None:
            self.selected_student_id = self.state.students[0].id

    def add_exercise(self) -> Exercise:
        with self._mutex:
            self.history.push(self.state)
            exercise = self.gradebook.add_exercise()
            self.active_exercise_id = exercise.id
            return exercise

    def add_student(self) -> Student:
        with self._mutex:
            self.history.push(self.state)
            return self.gradebook.add_student()

    def undo(self) -> bool:
        with self._mutex:
            previous = self.history.pop()
            if previous is None:
                return False
            self.gradebook.state = previous
            self._repair_selection()
            return True

    def load(self, state: GradebookState) -> None:
        """Replace the live state with a deep copy of ``state`` and select its first exercise and student."""
        with self._mutex:
            self.gradebook.replace(state)
            self.reset_selection()

    def import_state(self, raw: object) -> GradebookState:
        state = validate_state(raw, self.seed)
        with self._mutex:
            self.history.push(self.state)
            self.load(state)
            return self.state


class SessionRegistry:
    """Holds one ``GradingSession`` per owner for the lifetime of the process."""

    def __init__(self, history_capacity: int | None = None, seed_student_count: int | None = None) -> None:
        self._history_capacity = history_capacity or settings.history_capacity
        self._seed_student_count = seed_student_count or settings.seed_student_count
        self._sessions: dict[str, GradingSession] = {}
        self._lock = threading.Lock()

    def seed(self) -> GradebookState:
        return initial_state(self._seed_student_count)

    def get_or_start(self, owner: str, grade_log: GradeLogStore) -> GradingSession:
        with self._lock:
            session = self._sessions.get(owner)
            if session is not None:
                return session

            seed = self.seed()
            records = grade_log.list(owner)
            state = reconstruct(records, seed)
            session = GradingSession(
                owner=owner,
                state=state if state is not None else seed.model_copy(deep=True),
                seed=seed,
                history_capacity=self._history_capacity,
            )
            self._sessions[owner] = session
            logger.info("grading session started", extra={"owner": owner, "records": len(records)})
            return session

    def drop(self, owner: str) -> None:
        with self._lock:
            self._sessions.pop(owner, None)


_registry: SessionRegistry | None = None


def get_session_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def reset_session_registry() -> None:
    global _registry
    _registry = None
