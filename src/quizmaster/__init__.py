"""Turn text documents into AI-generated quizzes with resumable sessions."""

from __future__ import annotations

from importlib import metadata

from .controller import QuizController
from .errors import QuizMasterError
from .models import DocumentSession, QuizType, SessionState
from .store import SessionStore

try:
    __version__ = metadata.version("quizmaster")
except metadata.PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "__version__",
    "QuizController",
    "QuizMasterError",
    "DocumentSession",
    "QuizType",
    "SessionState",
    "SessionStore",
]
