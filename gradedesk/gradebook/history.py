"""Bounded undo history of gradebook snapshots."""

from __future__ import annotations

from collections import deque

from gradedesk.gradebook.state import GradebookState


class UndoHistory:
    """Stack of deep-copied snapshots, most recent first.

    Pushing beyond ``capacity`` drops the oldest snapshot. Popping walks
    back one step per call; popped snapshots are not kept for redo.
    """

    def __init__(self, capacity: int = 10) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._snapshots: deque[GradebookState] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._snapshots.maxlen or 0

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, state: GradebookState) -> None:
        self._snapshots.appendleft(state.model_copy(deep=True))

    def pop(self) -> GradebookState | None:
        if not self._snapshots:
            return None
        return self._snapshots.popleft()

    def clear(self) -> None:
        self._snapshots.clear()
