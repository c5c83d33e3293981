"""Quiz generation through an OpenAI chat model."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Mapping, Optional

from ..core.ai import load_client
from ..errors import GenerationError
from ..models import Option, Question, QuestionType, QuizType
from .common import chat_json_content, extract_json, unwrap_list

__all__ = [
    "NO_QUESTIONS_MESSAGE",
    "OpenAIQuizGenerator",
    "build_generation_prompts",
    "decode_questions",
]


NO_QUESTIONS_MESSAGE = (
    "The model returned no questions. Check the document content and try "
    "again."
)
_GENERIC_FAILURE = (
    "Unable to generate the quiz. Check the document content and try again."
)

_QUIZ_TYPE_GUIDANCE = {
    QuizType.SINGLE: "Every question has exactly one correct option.",
    QuizType.MULTIPLE: "Questions may have several correct options.",
    QuizType.MIXED: (
        "Mix single-answer questions with questions that have several "
        "correct options."
    ),
}

_log = logging.getLogger(__name__)


def build_generation_prompts(
    content: str,
    quiz_type: QuizType,
    num_questions: int,
    weak_topics: Optional[str] = None,
) -> tuple[str, str]:
    sys_prompt = (
        "You are an instructional designer who writes rigorous "
        "multiple-choice assessments."
    )
    focus = ""
    if weak_topics:
        focus = (
            "\nFocus the questions on these topics the learner struggled "
            f"with: {weak_topics}"
        )
    user_prompt = (
        "Write a quiz from the source text below.\n"
        "Rules:\n"
        "- Test understanding (analysis, comparison, application), not "
        "recall of wording.\n"
        "- Questions must stand alone: never mention the text, document or "
        "passage.\n"
        "- Write in the language of the source text.\n"
        f"- Create exactly {num_questions} questions.\n"
        f"- Quiz type: {quiz_type.label}. "
        f"{_QUIZ_TYPE_GUIDANCE[quiz_type]}"
        f"{focus}\n\n"
        "Respond with a single JSON object and nothing else:\n"
        '{"questions": [{"id": str, "questionText": str, '
        '"options": [{"text": str, "isCorrect": bool}], '
        '"type": "single" | "multiple"}]}\n\n'
        "Source text:\n---\n"
        f"{content}\n---"
    )
    return sys_prompt, user_prompt


def _first_present(item: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def _decode_options(raw_options: Any) -> List[Option]:
    options: List[Option] = []
    if not isinstance(raw_options, list):
        return options
    for raw in raw_options:
        if isinstance(raw, Mapping):
            text = str(raw.get("text", "")).strip()
            flag = _first_present(raw, "isCorrect", "is_correct", "correct")
            is_correct = flag is True or str(flag).lower() == "true"
        else:
            text = str(raw).strip()
            is_correct = False
        if text:
            options.append(Option(text=text, is_correct=is_correct))
    return options


def _resolve_type(raw_type: Any, options: List[Option]) -> QuestionType:
    correct = sum(1 for option in options if option.is_correct)
    if correct > 1:
        return QuestionType.MULTIPLE
    try:
        return QuestionType(str(raw_type).strip().lower())
    except ValueError:
        return QuestionType.SINGLE


def decode_questions(
    payload: Any, *, id_prefix: Optional[str] = None
) -> List[Question]:
    """Normalize a generator payload into validated questions.

    Accepts a bare array or an envelope object. Items without text, without
    options or without a correct option are skipped. Missing or duplicate
    ids are replaced with ``q-<prefix>-<index>``.
    """
    items = unwrap_list(payload, ("questions", "quiz", "items"))
    if items is None:
        raise GenerationError(
            "The model response does not contain a list of questions."
        )
    prefix = id_prefix or str(int(time.time() * 1000))
    questions: List[Question] = []
    seen: set[str] = set()
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            continue
        text = str(
            _first_present(item, "questionText", "question_text", "question")
            or ""
        ).strip()
        options = _decode_options(item.get("options"))
        if not text or not any(option.is_correct for option in options):
            continue
        question_id = str(item.get("id") or "").strip()
        if not question_id or question_id in seen:
            question_id = f"q-{prefix}-{index}"
        seen.add(question_id)
        questions.append(
            Question(
                id=question_id,
                question_text=text,
                options=tuple(options),
                type=_resolve_type(item.get("type"), options),
            )
        )
    return questions


class OpenAIQuizGenerator:
    """``QuizGenerator`` backed by OpenAI chat completions."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o-mini",
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
                raise GenerationError(str(exc)) from exc
        return self._client

    def generate(
        self,
        content: str,
        quiz_type: QuizType,
        num_questions: int,
        weak_topics: Optional[str] = None,
    ) -> List[Question]:
        client = self._ensure_client()
        sys_prompt, user_prompt = build_generation_prompts(
            content, quiz_type, num_questions, weak_topics
        )
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
                "Quiz generation request failed",
                extra={"model": self._model},
                exc_info=True,
            )
            raise GenerationError(_GENERIC_FAILURE) from exc

        questions = decode_questions(payload)
        if not questions:
            raise GenerationError(NO_QUESTIONS_MESSAGE)
        self._log.info(
            "Generated quiz questions",
            extra={
                "model": self._model,
                "requested": num_questions,
                "received": len(questions),
            },
        )
        return questions
