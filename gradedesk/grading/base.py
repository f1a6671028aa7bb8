"""Grader and chat interfaces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from pydantic import BaseModel, Field


@dataclass
class GradingInputs:
    question: str
    master_solution: str
    rubric: str
    custom_instructions: str
    student_code: str


class GradingResult(BaseModel):
    score: float = Field(ge=0, le=10)
    feedback: str


@dataclass
class ChatTurn:
    role: str
    text: str


class Grader(Protocol):
    """Grader protocol for scoring student code against a rubric."""

    name: str

    def grade(self, inputs: GradingInputs) -> GradingResult:
        """Return grading result."""


class ChatClient(Protocol):
    def reply(self, message: str, history: list[ChatTurn]) -> str:
        """Return the assistant's answer to ``message``."""
