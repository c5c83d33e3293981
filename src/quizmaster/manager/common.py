"""Shared plumbing for the OpenAI-backed quiz collaborators."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Optional, Protocol, Sequence

from ..models import CorrectionResponse, Question, QuizType

__all__ = [
    "QuizGenerator",
    "QuizGrader",
    "chat_json_content",
    "extract_json",
    "unwrap_list",
]


class QuizGenerator(Protocol):
    """Turns document text into questions; raises ``GenerationError``."""

    def generate(
        self,
        content: str,
        quiz_type: QuizType,
        num_questions: int,
        weak_topics: Optional[str] = None,
    ) -> list[Question]:
        ...


class QuizGrader(Protocol):
    """Grades answers question by question; raises ``GradingError``."""

    def grade(
        self,
        questions: Sequence[Question],
        answers: Mapping[str, Sequence[str]],
    ) -> CorrectionResponse:
        ...


_FENCE_RE = re.compile(r"```(?:json)?\s*(.+?)```", re.DOTALL)


def chat_json_content(
    client: Any,
    *,
    model: str,
    system_prompt: str,
    user_prompt: str,
    temperature: float,
    max_tokens: int,
) -> str:
    """Run a JSON-mode chat completion and return the raw message text.

    Transport errors propagate to the caller.
    """
    resp = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=temperature,
        max_tokens=max_tokens,
        response_format={"type": "json_object"},
    )
    raw_content = resp.choices[0].message.content
    return (raw_content or "").strip()


def extract_json(content: str) -> Any:
    """Parse JSON from model output, tolerating Markdown code fences."""
    if not content:
        raise ValueError("empty response")
    fenced = _FENCE_RE.search(content)
    payload = fenced.group(1) if fenced else content
    return json.loads(payload)


def unwrap_list(payload: Any, preferred_keys: Sequence[str]) -> Optional[list]:
    """Return the list inside ``payload``.

    A bare list is returned as-is. For an envelope object, the first of
    ``preferred_keys`` holding a list wins, then the first list value in
    the object. ``None`` means no list could be found.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        return None
    for key in preferred_keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    for value in payload.values():
        if isinstance(value, list):
            return value
    return None
