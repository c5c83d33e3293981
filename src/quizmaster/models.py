"""Data model for document sessions, quiz questions and grading results.

Every record here is an immutable dataclass. The session store replaces a
session wholesale on each mutation (see ``SessionStore.update_session``), so
readers never observe a half-applied change.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, MutableMapping, Optional

__all__ = [
    "SessionState",
    "QuizType",
    "QuestionType",
    "Option",
    "Question",
    "QuizResult",
    "CorrectionResponse",
    "DocumentSession",
    "UserAnswers",
]


class SessionState(enum.Enum):
    CONFIGURING_QUIZ = "configuring_quiz"
    GENERATING_QUIZ = "generating_quiz"
    TAKING_QUIZ = "taking_quiz"
    SUBMITTING_QUIZ = "submitting_quiz"
    REVIEWING_QUIZ = "reviewing_quiz"
    ERROR = "error"

    @property
    def is_busy(self) -> bool:
        """True while a collaborator call is in flight for the session."""
        return self in (
            SessionState.GENERATING_QUIZ,
            SessionState.SUBMITTING_QUIZ,
        )


class QuizType(enum.Enum):
    SINGLE = "Single answer"
    MULTIPLE = "Multiple answers"
    MIXED = "Mixed"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: str) -> "QuizType":
        """Resolve a member from its name or label, case-insensitively."""
        needle = str(raw).strip().lower()
        for member in cls:
            if needle in (member.name.lower(), member.value.lower()):
                return member
        raise ValueError(f"Unknown quiz type: {raw!r}")


class QuestionType(str, enum.Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


UserAnswers = dict[str, frozenset[str]]


@dataclass(frozen=True)
class Option:
    text: str
    is_correct: bool

    def to_dict(self) -> MutableMapping[str, Any]:
        return {"text": self.text, "is_correct": self.is_correct}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Option":
        return cls(
            text=str(payload["text"]),
            is_correct=bool(payload["is_correct"]),
        )


@dataclass(frozen=True)
class Question:
    """A multiple-choice question; ``id`` is unique within its session."""

    id: str
    question_text: str
    options: tuple[Option, ...]
    type: QuestionType

    @property
    def is_multiple(self) -> bool:
        return self.type is QuestionType.MULTIPLE

    @property
    def correct_answers(self) -> tuple[str, ...]:
        return tuple(
            option.text for option in self.options if option.is_correct
        )

    def option_texts(self) -> tuple[str, ...]:
        return tuple(option.text for option in self.options)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "question_text": self.question_text,
            "options": [option.to_dict() for option in self.options],
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Question":
        return cls(
            id=str(payload["id"]),
            question_text=str(payload["question_text"]),
            options=tuple(
                Option.from_dict(item) for item in payload["options"]
            ),
            type=QuestionType(payload["type"]),
        )


@dataclass(frozen=True)
class QuizResult:
    """Grading outcome for one question, produced by the grader."""

    question_text: str
    user_answer: tuple[str, ...]
    correct_answer: tuple[str, ...]
    is_correct: bool
    feedback_fr: str
    feedback_ar: str

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "question_text": self.question_text,
            "user_answer": list(self.user_answer),
            "correct_answer": list(self.correct_answer),
            "is_correct": self.is_correct,
            "feedback_fr": self.feedback_fr,
            "feedback_ar": self.feedback_ar,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "QuizResult":
        return cls(
            question_text=str(payload["question_text"]),
            user_answer=tuple(str(item) for item in payload["user_answer"]),
            correct_answer=tuple(
                str(item) for item in payload["correct_answer"]
            ),
            is_correct=bool(payload["is_correct"]),
            feedback_fr=str(payload["feedback_fr"]),
            feedback_ar=str(payload["feedback_ar"]),
        )


@dataclass(frozen=True)
class CorrectionResponse:
    results: tuple[QuizResult, ...]
    weak_topics: str

    @property
    def score(self) -> int:
        return sum(1 for result in self.results if result.is_correct)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def percentage(self) -> int:
        if not self.results:
            return 0
        return round(self.score / self.total * 100)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "results": [result.to_dict() for result in self.results],
            "weak_topics": self.weak_topics,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "CorrectionResponse":
        return cls(
            results=tuple(
                QuizResult.from_dict(item) for item in payload["results"]
            ),
            weak_topics=str(payload["weak_topics"]),
        )


@dataclass(frozen=True)
class DocumentSession:
    """The unit of persisted work: one uploaded document and its quiz."""

    id: str
    file_name: str
    content: str
    quiz_type: QuizType
    num_questions: int
    last_accessed: float
    state: SessionState = SessionState.CONFIGURING_QUIZ
    questions: tuple[Question, ...] = ()
    user_answers: UserAnswers = field(default_factory=dict)
    correction: Optional[CorrectionResponse] = None
    weak_topics: Optional[str] = None
    error: Optional[str] = None

    def question_by_id(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "file_name": self.file_name,
            "content": self.content,
            "quiz_type": self.quiz_type.name,
            "num_questions": self.num_questions,
            "last_accessed": self.last_accessed,
            "state": self.state.name,
            "questions": [question.to_dict() for question in self.questions],
            "user_answers": {
                question_id: sorted(selected)
                for question_id, selected in self.user_answers.items()
            },
            "correction": (
                self.correction.to_dict()
                if self.correction is not None
                else None
            ),
            "weak_topics": self.weak_topics,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DocumentSession":
        """Rebuild a session; raises ``KeyError``/``ValueError``/``TypeError``
        when the payload does not have the expected shape."""

        num_questions = int(payload["num_questions"])
        if num_questions < 1:
            raise ValueError("num_questions must be >= 1")
        raw_answers = payload.get("user_answers") or {}
        if not isinstance(raw_answers, Mapping):
            raise TypeError("user_answers must be a mapping")
        if not all(isinstance(item, list) for item in raw_answers.values()):
            raise TypeError("user_answers values must be lists")
        raw_correction = payload.get("correction")
        weak_topics = payload.get("weak_topics")
        error = payload.get("error")
        return cls(
            id=str(payload["id"]),
            file_name=str(payload["file_name"]),
            content=str(payload["content"]),
            quiz_type=QuizType[payload["quiz_type"]],
            num_questions=num_questions,
            last_accessed=float(payload["last_accessed"]),
            state=SessionState[payload["state"]],
            questions=tuple(
                Question.from_dict(item)
                for item in payload.get("questions") or ()
            ),
            user_answers={
                str(question_id): frozenset(str(item) for item in selected)
                for question_id, selected in raw_answers.items()
            },
            correction=(
                CorrectionResponse.from_dict(raw_correction)
                if raw_correction is not None
                else None
            ),
            weak_topics=str(weak_topics) if weak_topics is not None else None,
            error=str(error) if error is not None else None,
        )
