from .common import QuizGenerator, QuizGrader
from .generator import (
    NO_QUESTIONS_MESSAGE,
    OpenAIQuizGenerator,
    decode_questions,
)
from .grader import OpenAIQuizGrader, decode_correction

__all__ = [
    "QuizGenerator",
    "QuizGrader",
    "NO_QUESTIONS_MESSAGE",
    "OpenAIQuizGenerator",
    "OpenAIQuizGrader",
    "decode_questions",
    "decode_correction",
]
