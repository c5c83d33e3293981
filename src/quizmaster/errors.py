"""Exception hierarchy shared across quizmaster modules."""

from __future__ import annotations

__all__ = [
    "QuizMasterError",
    "IngestionError",
    "GenerationError",
    "GradingError",
    "PersistenceLoadError",
    "PersistenceSaveError",
    "TransitionError",
    "SessionNotFoundError",
]


class QuizMasterError(RuntimeError):
    """Base class for quizmaster failures."""


class IngestionError(QuizMasterError):
    """Raised when an uploaded document cannot be read."""


class GenerationError(QuizMasterError):
    """Raised when the quiz generator fails or produces no usable questions."""


class GradingError(QuizMasterError):
    """Raised when the quiz grader fails or returns a malformed result."""


class PersistenceLoadError(QuizMasterError):
    """Raised when the durable session record is unreadable or corrupt."""


class PersistenceSaveError(QuizMasterError):
    """Raised when the durable session record cannot be written."""


class TransitionError(QuizMasterError):
    """Raised when an action is not allowed in the session's current state."""


class SessionNotFoundError(QuizMasterError, KeyError):
    """Raised when a session identifier is unknown to the store."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id

    def __str__(self) -> str:
        return str(self.args[0])
