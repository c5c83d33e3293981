"""In-memory session store mirrored to durable storage on every mutation."""

from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from typing import Any, Callable, Iterator, Optional

from .errors import SessionNotFoundError
from .models import DocumentSession, QuizType
from .persistence import PersistenceSynchronizer

__all__ = ["SessionStore"]


Clock = Callable[[], float]
IdFactory = Callable[[], str]

_IMMUTABLE_FIELDS = frozenset({"id", "file_name", "content"})
_UPDATABLE_FIELDS = frozenset(
    f.name for f in dataclasses.fields(DocumentSession)
) - _IMMUTABLE_FIELDS - {"last_accessed"}
_MAX_ID_ATTEMPTS = 8

_log = logging.getLogger(__name__)


class SessionStore:
    """Own the ``id -> DocumentSession`` mapping.

    Every ``create_session``/``update_session``/``delete_session`` replaces
    the affected record wholesale and then saves the entire mapping through
    the synchronizer.
    """

    def __init__(
        self,
        synchronizer: PersistenceSynchronizer,
        *,
        clock: Clock = time.time,
        id_factory: IdFactory | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sync = synchronizer
        self._clock = clock
        self._id_factory = id_factory or _generate_session_id
        self._log = logger or _log
        self._sessions: dict[str, DocumentSession] = {}
        self._retired_ids: set[str] = set()

    @property
    def loaded(self) -> bool:
        return self._sync.loaded

    def load(self) -> None:
        """Replace the in-memory mapping with the durable one.

        Sessions created before loading finished are kept on top of the
        loaded ones and written back immediately.
        """

        pending = dict(self._sessions)
        self._sessions = self._sync.load()
        if pending:
            self._sessions.update(pending)
            self.save()

    def save(self) -> bool:
        return self._sync.save(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._sessions))

    def find_session(self, session_id: str) -> Optional[DocumentSession]:
        return self._sessions.get(session_id)

    def get_session(self, session_id: str) -> DocumentSession:
        try:
            return self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    def list_sessions(self) -> list[DocumentSession]:
        """Return sessions, most recently accessed first."""

        return sorted(
            self._sessions.values(),
            key=lambda session: session.last_accessed,
            reverse=True,
        )

    def snapshot(self) -> dict[str, DocumentSession]:
        return dict(self._sessions)

    def create_session(
        self,
        file_name: str,
        content: str,
        *,
        quiz_type: QuizType = QuizType.MIXED,
        num_questions: int = 5,
    ) -> str:
        _require_question_count(num_questions)
        session_id = self._allocate_id()
        session = DocumentSession(
            id=session_id,
            file_name=file_name,
            content=content,
            quiz_type=quiz_type,
            num_questions=num_questions,
            last_accessed=self._clock(),
        )
        self._sessions[session_id] = session
        self._log.info(
            "Created session",
            extra={"session_id": session_id, "file_name": file_name},
        )
        self.save()
        return session_id

    def update_session(
        self, session_id: str, **fields: Any
    ) -> DocumentSession:
        """Apply ``fields`` to a session and stamp ``last_accessed``.

        ``last_accessed`` is refreshed even when ``fields`` is empty.
        """

        current = self.get_session(session_id)
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(
                "Cannot update session field(s): {0}".format(
                    ", ".join(sorted(unknown))
                )
            )
        if "num_questions" in fields:
            _require_question_count(fields["num_questions"])
        updated = dataclasses.replace(
            current, **fields, last_accessed=self._clock()
        )
        self._sessions[session_id] = updated
        self.save()
        return updated

    def delete_session(self, session_id: str) -> None:
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)
        del self._sessions[session_id]
        self._retired_ids.add(session_id)
        self._log.info("Deleted session", extra={"session_id": session_id})
        self.save()

    def _allocate_id(self) -> str:
        for _ in range(_MAX_ID_ATTEMPTS):
            candidate = self._id_factory()
            if (
                candidate not in self._sessions
                and candidate not in self._retired_ids
            ):
                return candidate
        raise RuntimeError("Failed to allocate a unique session id.")


def _require_question_count(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError("num_questions must be an integer >= 1.")


def _generate_session_id() -> str:
    return uuid.uuid4().hex
