"""Answer tracking: radio/checkbox selection semantics and the submit guard."""

from __future__ import annotations

from typing import Mapping, Sequence

from .models import Question, UserAnswers

__all__ = [
    "apply_answer",
    "is_quiz_answered",
    "unanswered_questions",
    "ordered_answers",
]


def apply_answer(
    answers: Mapping[str, frozenset[str]],
    question_id: str,
    option_text: str,
    is_multiple: bool,
) -> UserAnswers:
    """Return a new answer mapping with one selection applied.

    Single-select replaces the question's set with ``{option_text}``.
    Multi-select toggles ``option_text`` in the existing set, so applying the
    same toggle twice restores the original set. Emptied sets are dropped.
    """
    updated: UserAnswers = dict(answers)
    if is_multiple:
        toggled = answers.get(question_id, frozenset()) ^ {option_text}
        if toggled:
            updated[question_id] = toggled
        else:
            updated.pop(question_id, None)
    else:
        updated[question_id] = frozenset({option_text})
    return updated


def unanswered_questions(
    questions: Sequence[Question], answers: Mapping[str, frozenset[str]]
) -> list[Question]:
    return [question for question in questions if not answers.get(question.id)]


def is_quiz_answered(
    questions: Sequence[Question], answers: Mapping[str, frozenset[str]]
) -> bool:
    """Submit guard: every question has at least one selected option.

    A quiz without questions is never considered answered.
    """
    if not questions:
        return False
    return not unanswered_questions(questions, answers)


def ordered_answers(
    questions: Sequence[Question], answers: Mapping[str, frozenset[str]]
) -> dict[str, list[str]]:
    """Return answers as lists ordered like each question's options."""
    ordered: dict[str, list[str]] = {}
    for question in questions:
        selected = answers.get(question.id, frozenset())
        ordered[question.id] = [
            text for text in question.option_texts() if text in selected
        ]
    return ordered
