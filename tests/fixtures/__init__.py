"""Shared testing fixtures and fakes for the quizmaster test suite."""

from .openai import FakeChatClient, raising  # noqa: F401
from .quiz import (  # noqa: F401
    FakeClock,
    ScriptedGenerator,
    ScriptedGrader,
    make_correction,
    make_question,
    make_questions,
)
from .workspace import DocumentFolder  # noqa: F401

__all__ = [
    "DocumentFolder",
    "FakeChatClient",
    "FakeClock",
    "ScriptedGenerator",
    "ScriptedGrader",
    "make_correction",
    "make_question",
    "make_questions",
    "raising",
]
