"""Quiz grading and feedback through an OpenAI chat model."""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Mapping, Sequence

from ..core.ai import load_client
from ..errors import GradingError
from ..models import CorrectionResponse, Question, QuizResult
from .common import chat_json_content, extract_json, unwrap_list

__all__ = [
    "OpenAIQuizGrader",
    "build_grading_prompts",
    "decode_correction",
]


_GENERIC_FAILURE = "Unable to grade the quiz. Please try again."

_log = logging.getLogger(__name__)


def build_grading_prompts(
    questions: Sequence[Question],
    answers: Mapping[str, Sequence[str]],
) -> tuple[str, str]:
    quiz_data = [
        {
            "questionText": question.question_text,
            "options": list(question.option_texts()),
            "correctAnswers": list(question.correct_answers),
            "userAnswer": list(answers.get(question.id, [])),
        }
        for question in questions
    ]
    sys_prompt = "You are an expert tutor who grades quizzes and explains."
    user_prompt = (
        "Grade the learner's answers below.\n"
        "Rules:\n"
        "- An answer is correct only when it matches every correct answer "
        "exactly.\n"
        "- For every question write two explanations, one in French "
        "(feedbackFR) and one in Arabic (feedbackAR), saying why the answer "
        "is right or wrong and which answer is correct.\n"
        "- Summarize the topics the learner got wrong in one concise "
        "string (weakTopics); use an empty string when everything is "
        "correct.\n\n"
        "Respond with a single JSON object and nothing else:\n"
        '{"results": [{"questionText": str, "userAnswer": [str], '
        '"correctAnswer": [str], "isCorrect": bool, "feedbackFR": str, '
        '"feedbackAR": str}], "weakTopics": str}\n\n'
        "Quiz data:\n---\n"
        f"{json.dumps(quiz_data, ensure_ascii=False, indent=2)}\n---"
    )
    return sys_prompt, user_prompt


def _field(item: Mapping[str, Any], camel: str, snake: str) -> Any:
    if camel in item:
        return item[camel]
    if snake in item:
        return item[snake]
    raise GradingError(f"Grading result is missing '{camel}'.")


def _text(item: Mapping[str, Any], camel: str, snake: str) -> str:
    value = item.get(camel, item.get(snake))
    return "" if value is None else str(value)


def _string_list(value: Any, *, name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    if not isinstance(value, list):
        raise GradingError(f"Grading result field '{name}' must be a list.")
    return tuple(str(item) for item in value)


def _decode_result(item: Any) -> QuizResult:
    if not isinstance(item, Mapping):
        raise GradingError("Each grading result must be an object.")
    is_correct = _field(item, "isCorrect", "is_correct")
    if not isinstance(is_correct, bool):
        raise GradingError("Grading result field 'isCorrect' must be a bool.")
    return QuizResult(
        question_text=str(_field(item, "questionText", "question_text")),
        user_answer=_string_list(
            _field(item, "userAnswer", "user_answer"), name="userAnswer"
        ),
        correct_answer=_string_list(
            _field(item, "correctAnswer", "correct_answer"),
            name="correctAnswer",
        ),
        is_correct=is_correct,
        feedback_fr=_text(item, "feedbackFR", "feedback_fr"),
        feedback_ar=_text(item, "feedbackAR", "feedback_ar"),
    )


def decode_correction(payload: Any) -> CorrectionResponse:
    """Normalize a grader payload; malformed shapes raise ``GradingError``.

    A nested envelope such as ``{"correction": {...}}`` is unwrapped first.
    """
    if isinstance(payload, Mapping) and "results" not in payload:
        nested = [
            value
            for value in payload.values()
            if isinstance(value, Mapping) and "results" in value
        ]
        if len(nested) == 1:
            payload = nested[0]
    results = unwrap_list(payload, ("results",))
    if results is None:
        raise GradingError("The grading response has no results list.")
    weak_topics = ""
    if isinstance(payload, Mapping):
        raw_topics = payload.get("weakTopics", payload.get("weak_topics"))
        if raw_topics is not None:
            weak_topics = (
                ", ".join(str(item) for item in raw_topics)
                if isinstance(raw_topics, list)
                else str(raw_topics)
            )
    return CorrectionResponse(
        results=tuple(_decode_result(item) for item in results),
        weak_topics=weak_topics.strip(),
    )


class OpenAIQuizGrader:
    """``QuizGrader`` backed by OpenAI chat completions."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o",
        temperature: float = 0.2,
        max_tokens: int = 4000,
        client: Any | None = None,
        client_factory: Callable[[], Any] = load_client,
        logger: logging.Logger | None = None,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._client = client
        self._client_factory = client_factory
        self._log = logger or _log

    def _ensure_client(self) -> Any:
        if self._client is None:
            try:
                self._client = self._client_factory()
            except RuntimeError as exc:
                raise GradingError(str(exc)) from exc
        return self._client

    def grade(
        self,
        questions: Sequence[Question],
        answers: Mapping[str, Sequence[str]],
    ) -> CorrectionResponse:
        client = self._ensure_client()
        sys_prompt, user_prompt = build_grading_prompts(questions, answers)
        try:
            raw = chat_json_content(
                client,
                model=self._model,
                system_prompt=sys_prompt,
                user_prompt=user_prompt,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
            payload = extract_json(raw)
        except Exception as exc:
            self._log.error(
                "Quiz grading request failed",
                extra={"model": self._model},
                exc_info=True,
            )
            raise GradingError(_GENERIC_FAILURE) from exc

        correction = decode_correction(payload)
        self._log.info(
            "Graded quiz",
            extra={
                "model": self._model,
                "score": correction.score,
                "total": correction.total,
            },
        )
        return correction
