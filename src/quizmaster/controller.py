"""Session lifecycle controller.

One session at most is *active* (selected for display). Every user action
is checked against the active session's state before anything is written;
a rejected action raises :class:`TransitionError` and leaves the store as it
was.

Generation and grading are the only suspending steps. Each is split into a
``begin_*`` phase, which moves the session into ``GENERATING_QUIZ`` or
``SUBMITTING_QUIZ`` and returns the request to run, and a
``complete_*``/``fail_*`` phase addressed by session id. ``generate_quiz``
and ``submit_quiz`` run both phases in one call. While a session is in a
suspended state, the state itself blocks a second request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .answers import apply_answer, is_quiz_answered, ordered_answers
from .core.files import read_document
from .errors import GenerationError, GradingError, TransitionError
from .manager.common import QuizGenerator, QuizGrader
from .manager.generator import NO_QUESTIONS_MESSAGE
from .models import (
    CorrectionResponse,
    DocumentSession,
    Question,
    QuizType,
    SessionState,
)
from .store import SessionStore

__all__ = [
    "GenerationRequest",
    "SubmissionRequest",
    "QuizController",
    "validate_questions",
]


UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."
INTERRUPTED_MESSAGE = (
    "The previous request was interrupted before it finished. Try again."
)

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    session_id: str
    content: str
    quiz_type: QuizType
    num_questions: int
    weak_topics: Optional[str]


@dataclass(frozen=True)
class SubmissionRequest:
    session_id: str
    questions: tuple[Question, ...]
    answers: dict[str, list[str]]


def validate_questions(questions: Sequence[Question]) -> Optional[str]:
    """Return a problem description, or ``None`` when the quiz is playable."""

    if not questions:
        return NO_QUESTIONS_MESSAGE
    seen: set[str] = set()
    for position, question in enumerate(questions, start=1):
        if not question.id or question.id in seen:
            return f"Question {position} has a missing or duplicate id."
        seen.add(question.id)
        if not question.question_text.strip():
            return f"Question {position} has no text."
        if not question.options:
            return f"Question {position} has no options."
        if not any(option.is_correct for option in question.options):
            return f"Question {position} has no correct option."
    return None


class QuizController:
    """Drive document sessions through configuration, quiz and review."""

    def __init__(
        self,
        store: SessionStore,
        generator: QuizGenerator,
        grader: QuizGrader,
        *,
        max_questions: int = 20,
        default_quiz_type: QuizType = QuizType.MIXED,
        default_num_questions: int = 5,
        extensions: Iterable[str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._generator = generator
        self._grader = grader
        self._max_questions = max_questions
        self._default_quiz_type = default_quiz_type
        self._default_num_questions = min(default_num_questions, max_questions)
        self._extensions = list(extensions) if extensions else None
        self._log = logger or _log
        self._active_id: Optional[str] = None

    # -- selection -----------------------------------------------------

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def max_questions(self) -> int:
        return self._max_questions

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_id

    @property
    def active_session(self) -> Optional[DocumentSession]:
        if self._active_id is None:
            return None
        return self._store.find_session(self._active_id)

    def list_sessions(self) -> list[DocumentSession]:
        return self._store.list_sessions()

    def ingest_file(self, path: Path) -> str:
        """Read ``path`` and open a new session for it.

        ``IngestionError`` propagates and no session is created.
        """
        content = read_document(path, extensions=self._extensions)
        return self.create_session(Path(path).name, content)

    def create_session(self, file_name: str, content: str) -> str:
        session_id = self._store.create_session(
            file_name,
            content,
            quiz_type=self._default_quiz_type,
            num_questions=self._default_num_questions,
        )
        self._active_id = session_id
        return session_id

    def select_session(self, session_id: str) -> DocumentSession:
        session = self._store.update_session(session_id)
        self._active_id = session_id
        return session

    def deselect_session(self) -> None:
        """Go back to the document list; the session keeps its state."""
        self._active_id = None

    def delete_session(self, session_id: str) -> None:
        self._store.delete_session(session_id)
        if self._active_id == session_id:
            self._active_id = None

    def discard_session(self) -> None:
        """Delete the active session (the "new file" reset)."""
        session = self._require_active()
        if session.state.is_busy:
            raise TransitionError(
                "Cannot discard a session while a request is in flight."
            )
        self.delete_session(session.id)

    # -- configuration -------------------------------------------------

    def configure(
        self,
        *,
        quiz_type: Optional[QuizType] = None,
        num_questions: Optional[int] = None,
    ) -> DocumentSession:
        session = self._require_state(SessionState.CONFIGURING_QUIZ)
        fields: dict[str, object] = {}
        if quiz_type is not None:
            fields["quiz_type"] = quiz_type
        if num_questions is not None:
            if (
                isinstance(num_questions, bool)
                or not isinstance(num_questions, int)
                or not 1 <= num_questions <= self._max_questions
            ):
                raise TransitionError(
                    "Number of questions must be between 1 and "
                    f"{self._max_questions}."
                )
            fields["num_questions"] = num_questions
        return self._store.update_session(session.id, **fields)

    @staticmethod
    def can_generate(session: DocumentSession) -> bool:
        return (
            session.state is SessionState.CONFIGURING_QUIZ
            and bool(session.content.strip())
        )

    # -- generation ----------------------------------------------------

    def begin_generation(self) -> GenerationRequest:
        session = self._require_state(SessionState.CONFIGURING_QUIZ)
        if not session.content.strip():
            raise TransitionError("The document is empty; nothing to quiz.")
        session = self._transition(
            session, SessionState.GENERATING_QUIZ, error=None
        )
        return GenerationRequest(
            session_id=session.id,
            content=session.content,
            quiz_type=session.quiz_type,
            num_questions=session.num_questions,
            weak_topics=session.weak_topics,
        )

    def complete_generation(
        self, session_id: str, questions: Sequence[Question]
    ) -> Optional[DocumentSession]:
        session = self._pending(session_id, SessionState.GENERATING_QUIZ)
        if session is None:
            return None
        problem = validate_questions(questions)
        if problem is not None:
            return self._transition(
                session, SessionState.ERROR, error=problem
            )
        return self._transition(
            session,
            SessionState.TAKING_QUIZ,
            questions=tuple(questions),
            user_answers={},
            correction=None,
            error=None,
        )

    def fail_generation(
        self, session_id: str, message: str
    ) -> Optional[DocumentSession]:
        session = self._pending(session_id, SessionState.GENERATING_QUIZ)
        if session is None:
            return None
        return self._transition(
            session, SessionState.ERROR, error=message or UNKNOWN_ERROR_MESSAGE
        )

    def run_generation(
        self, request: GenerationRequest
    ) -> Optional[DocumentSession]:
        """Call the generator for ``request`` and complete or fail it."""
        try:
            questions = self._generator.generate(
                request.content,
                request.quiz_type,
                request.num_questions,
                request.weak_topics,
            )
        except GenerationError as exc:
            return self.fail_generation(request.session_id, str(exc))
        except Exception:
            self._log.exception(
                "Quiz generator raised unexpectedly",
                extra={"session_id": request.session_id},
            )
            return self.fail_generation(
                request.session_id, UNKNOWN_ERROR_MESSAGE
            )
        return self.complete_generation(request.session_id, questions)

    def generate_quiz(self) -> Optional[DocumentSession]:
        return self.run_generation(self.begin_generation())

    # -- answering -----------------------------------------------------

    def record_answer(
        self, question_id: str, option_text: str, is_multiple: bool
    ) -> Optional[DocumentSession]:
        """Select (radio) or toggle (checkbox) an option on the active quiz.

        Without an active session this is a no-op returning ``None``.
        """
        session = self.active_session
        if session is None:
            return None
        if session.state is not SessionState.TAKING_QUIZ:
            raise TransitionError(
                "Answers can only change while taking the quiz."
            )
        question = session.question_by_id(question_id)
        if question is None:
            raise TransitionError(f"Unknown question: {question_id}")
        if option_text not in question.option_texts():
            raise TransitionError(
                f"'{option_text}' is not an option of question {question_id}."
            )
        answers = apply_answer(
            session.user_answers, question_id, option_text, is_multiple
        )
        return self._store.update_session(session.id, user_answers=answers)

    def is_quiz_answered(
        self, session: Optional[DocumentSession] = None
    ) -> bool:
        target = session or self.active_session
        if target is None:
            return False
        return is_quiz_answered(target.questions, target.user_answers)

    # -- submission ----------------------------------------------------

    def begin_submission(self) -> SubmissionRequest:
        session = self._require_state(SessionState.TAKING_QUIZ)
        if not is_quiz_answered(session.questions, session.user_answers):
            raise TransitionError(
                "Answer every question before submitting the quiz."
            )
        session = self._transition(
            session, SessionState.SUBMITTING_QUIZ, error=None
        )
        return SubmissionRequest(
            session_id=session.id,
            questions=session.questions,
            answers=ordered_answers(session.questions, session.user_answers),
        )

    def complete_submission(
        self, session_id: str, correction: CorrectionResponse
    ) -> Optional[DocumentSession]:
        session = self._pending(session_id, SessionState.SUBMITTING_QUIZ)
        if session is None:
            return None
        return self._transition(
            session,
            SessionState.REVIEWING_QUIZ,
            correction=correction,
            weak_topics=correction.weak_topics or None,
        )

    def fail_submission(
        self, session_id: str, message: str
    ) -> Optional[DocumentSession]:
        session = self._pending(session_id, SessionState.SUBMITTING_QUIZ)
        if session is None:
            return None
        return self._transition(
            session, SessionState.ERROR, error=message or UNKNOWN_ERROR_MESSAGE
        )

    def run_submission(
        self, request: SubmissionRequest
    ) -> Optional[DocumentSession]:
        """Call the grader for ``request`` and complete or fail it."""
        try:
            correction = self._grader.grade(
                request.questions, request.answers
            )
        except GradingError as exc:
            return self.fail_submission(request.session_id, str(exc))
        except Exception:
            self._log.exception(
                "Quiz grader raised unexpectedly",
                extra={"session_id": request.session_id},
            )
            return self.fail_submission(
                request.session_id, UNKNOWN_ERROR_MESSAGE
            )
        return self.complete_submission(request.session_id, correction)

    def submit_quiz(self) -> Optional[DocumentSession]:
        return self.run_submission(self.begin_submission())

    # -- review and recovery -------------------------------------------

    def start_new_quiz(self) -> DocumentSession:
        """Reset the reviewed document to a fresh configuration."""
        session = self._require_state(SessionState.REVIEWING_QUIZ)
        return self._transition(
            session,
            SessionState.CONFIGURING_QUIZ,
            questions=(),
            user_answers={},
            correction=None,
            weak_topics=None,
            error=None,
        )

    def improve_weak_topics(self) -> DocumentSession:
        """Back to configuration, keeping ``weak_topics`` to target."""
        session = self._require_state(SessionState.REVIEWING_QUIZ)
        if not session.weak_topics:
            raise TransitionError("There are no weak topics to work on.")
        return self._transition(
            session,
            SessionState.CONFIGURING_QUIZ,
            questions=(),
            user_answers={},
            correction=None,
            error=None,
        )

    def acknowledge_error(self) -> DocumentSession:
        session = self._require_state(SessionState.ERROR)
        return self._transition(
            session, SessionState.CONFIGURING_QUIZ, error=None
        )

    def recover_interrupted(self) -> list[str]:
        """Move sessions left in a suspended state by a previous run to ERROR.

        Call once, right after the store has been loaded. Returns the ids of
        the sessions that were recovered.
        """
        recovered: list[str] = []
        for session in self._store.list_sessions():
            if not session.state.is_busy:
                continue
            self._transition(
                session, SessionState.ERROR, error=INTERRUPTED_MESSAGE
            )
            recovered.append(session.id)
        return recovered

    # -- helpers -------------------------------------------------------

    def _require_active(self) -> DocumentSession:
        session = self.active_session
        if session is None:
            raise TransitionError("No active session.")
        return session

    def _require_state(self, expected: SessionState) -> DocumentSession:
        session = self._require_active()
        if session.state is not expected:
            raise TransitionError(
                "Action requires state {0}; session is {1}.".format(
                    expected.name, session.state.name
                )
            )
        return session

    def _pending(
        self, session_id: str, expected: SessionState
    ) -> Optional[DocumentSession]:
        session = self._store.find_session(session_id)
        if session is None:
            self._log.warning(
                "Dropping result for a deleted session",
                extra={"session_id": session_id, "expected": expected.name},
            )
            return None
        if session.state is not expected:
            raise TransitionError(
                "Session {0} is {1}, not {2}.".format(
                    session_id, session.state.name, expected.name
                )
            )
        return session

    def _transition(
        self, session: DocumentSession, target: SessionState, **fields: object
    ) -> DocumentSession:
        updated = self._store.update_session(
            session.id, state=target, **fields
        )
        self._log.info(
            "Session state changed",
            extra={
                "session_id": session.id,
                "from_state": session.state.name,
                "to_state": target.name,
            },
        )
        return updated
