"""OpenAI grading and chat clients."""

from __future__ import annotations

import copy
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any

import httpx
import openai
from pydantic import ValidationError

from gradedesk.grading.base import ChatClient, ChatTurn, Grader, GradingInputs, GradingResult
from gradedesk.settings import settings

logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ("rate limit", "rate_limit", "quota", "resource_exhausted", "too many requests")


class GraderUnavailableError(RuntimeError):
    """Raised when the model client cannot be configured."""


@dataclass
class OpenAIRequestError(Exception):
    status_code: int | None
    body: str
    message: str

    def __str__(self) -> str:
        return self.message

    @property
    def rate_limited(self) -> bool:
        if self.status_code == 429:
            return True
        text = f"{self.body} {self.message}".lower()
        return any(marker in text for marker in _RATE_LIMIT_MARKERS)


def _grading_result_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "score": {"type": "number", "description": "Final score from 0 to 10"},
            "feedback": {"type": "string", "description": "Pedagogical feedback for the student"},
        },
        "required": ["score", "feedback"],
        "additionalProperties": False,
    }


def build_grading_response_schema() -> dict[str, Any]:
    return copy.deepcopy(_grading_result_schema())


def build_grading_prompt(inputs: GradingInputs, feedback_language: str) -> str:
    return (
        "You are a senior academic evaluator for programming courses. "
        "Grade the student submission strictly against the rubric and compare it with the master solution.\n\n"
        f"Question:\n{inputs.question}\n\n"
        f"Master solution:\n{inputs.master_solution}\n\n"
        f"Rubric:\n{inputs.rubric}\n\n"
        f"Custom instructions:\n{inputs.custom_instructions}\n\n"
        f"Student code:\n{inputs.student_code}\n\n"
        "Check logic errors, efficiency and adherence to the requirements. "
        "Any violation of the custom instructions must lower the score. "
        f"Return a score between 0 and 10 and two or three sentences of constructive feedback written in {feedback_language}. "
        "Return ONLY JSON matching the provided schema."
    )


def build_grading_request(model: str, prompt: str, schema: dict[str, object]) -> dict[str, object]:
    return {
        "model": model,
        "input": [{"role": "user", "content": [{"type": "input_text", "text": prompt}]}],
        "text": {
            "format": {
                "type": "json_schema",
                "name": "grading_result",
                "strict": True,
                "schema": schema,
            }
        },
    }


def build_chat_request(model: str, message: str, history: list[ChatTurn]) -> dict[str, object]:
    messages: list[dict[str, str]] = []
    for turn in history:
        role = "assistant" if turn.role in {"assistant", "model"} else "user"
        messages.append({"role": role, "content": turn.text})
    messages.append({"role": "user", "content": message})
    return {"model": model, "input": messages}


def parse_grading_output(output_text: str) -> GradingResult:
    try:
        return GradingResult.model_validate(json.loads(output_text.strip()))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise OpenAIRequestError(
            status_code=502,
            body=output_text[:2000],
            message=f"Grader returned malformed output: {exc}",
        ) from exc


def _to_request_error(exc: Exception) -> OpenAIRequestError:
    status_code = getattr(exc, "status_code", None)
    if isinstance(exc, (openai.APITimeoutError, httpx.TimeoutException, TimeoutError)):
        status_code = 504
    response_obj = getattr(exc, "response", None)
    body_text = ""
    if response_obj is not None:
        body_text = getattr(response_obj, "text", "") or ""
    if not body_text:
        body_text = str(exc)
    return OpenAIRequestError(status_code=status_code, body=body_text, message=f"OpenAI request failed: {exc}")


class _OpenAIClientMixin:
    def __init__(self, model: str, timeout_seconds: float) -> None:
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise GraderUnavailableError("OPENAI_API_KEY is not set")

        self._client = openai.OpenAI(api_key=api_key, timeout=timeout_seconds)
        self._model = model

    def _create(self, request_payload: dict[str, object], stage: str) -> str:
        started = time.perf_counter()
        try:
            response = self._client.responses.create(**request_payload)
        except (openai.APIError, httpx.HTTPError, TimeoutError) as exc:
            error = _to_request_error(exc)
            logger.warning(
                "openai call failed",
                extra={"stage": stage, "model": self._model, "status_code": error.status_code, "rate_limited": error.rate_limited},
            )
            raise error from exc
        logger.info(
            "openai call timing",
            extra={"stage": stage, "model": self._model, "openai_ms": int((time.perf_counter() - started) * 1000)},
        )
        return response.output_text or ""


class OpenAIGrader(_OpenAIClientMixin):
    name = "openai"

    def __init__(
        self,
        model: str | None = None,
        timeout_seconds: float | None = None,
        feedback_language: str | None = None,
    ) -> None:
        super().__init__(model or settings.grading_model, timeout_seconds or settings.openai_timeout_seconds)
        self._feedback_language = feedback_language or settings.feedback_language

    def grade(self, inputs: GradingInputs) -> GradingResult:
        request_payload = build_grading_request(
            model=self._model,
            prompt=build_grading_prompt(inputs, self._feedback_language),
            schema=build_grading_response_schema(),
        )
        output_text = self._create(request_payload, stage="grade")
        if not output_text.strip():
            raise OpenAIRequestError(status_code=502, body="", message="Received empty response from grader")
        return parse_grading_output(output_text)


class OpenAIChatClient(_OpenAIClientMixin):
    def __init__(self, model: str | None = None, timeout_seconds: float | None = None) -> None:
        super().__init__(model or settings.chat_model, timeout_seconds or settings.openai_timeout_seconds)

    def reply(self, message: str, history: list[ChatTurn]) -> str:
        output_text = self._create(build_chat_request(self._model, message, history), stage="chat")
        return output_text or "No response generated."


class MockGrader:
    name = "mock"

    def grade(self, inputs: GradingInputs) -> GradingResult:
        if "RATE_LIMIT" in inputs.student_code:
            raise OpenAIRequestError(status_code=429, body="rate limit reached", message="OpenAI request failed: 429")
        score = 8.0 if inputs.student_code.strip() else 0.0
        return GradingResult(score=score, feedback="The solution meets most rubric requirements.")


class MockChatClient:
    def reply(self, message: str, history: list[ChatTurn]) -> str:
        return f"[{len(history)}] {message}"


def _mock_enabled() -> bool:
    return os.getenv("OPENAI_MOCK", "").strip() == "1"


def get_grader() -> Grader:
    if _mock_enabled():
        return MockGrader()
    return OpenAIGrader()


def get_chat_client() -> ChatClient:
    if _mock_enabled():
        return MockChatClient()
    return OpenAIChatClient()
