"""Durable storage for the session store.

The whole session mapping is written as one JSON record under a fixed key on
every change. Loading must happen before the first save so an empty
in-memory store never overwrites the durable record during startup.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Mapping, Optional

from .errors import PersistenceLoadError, PersistenceSaveError
from .models import DocumentSession

__all__ = [
    "JsonRecordStorage",
    "PersistenceSynchronizer",
    "decode_sessions",
    "encode_sessions",
]


_LOCK_SUFFIX = ".lock"
_LOCK_TIMEOUT_SECONDS = 5.0
# A lock older than this was left behind by a process that died mid-save.
_STALE_LOCK_SECONDS = 30.0

_log = logging.getLogger(__name__)


class JsonRecordStorage:
    """Key-value record storage backed by one JSON file per key."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        return self._root / f"{key}.json"

    def read(self, key: str) -> Optional[Any]:
        """Return the decoded record, or ``None`` when it was never written."""

        target = self.path_for(key)
        if not target.exists():
            return None
        try:
            return json.loads(target.read_text(encoding="utf-8"))
        except (OSError, ValueError, RecursionError) as exc:
            raise PersistenceLoadError(
                f"Failed to read session record: {target}"
            ) from exc

    def write(self, key: str, payload: Any) -> None:
        target = self.path_for(key)
        try:
            text = json.dumps(payload, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as exc:
            raise PersistenceSaveError(
                "Session record is not JSON serializable."
            ) from exc
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            with _RecordLock(target.with_name(target.name + _LOCK_SUFFIX)):
                _atomic_write_text(target, text)
        except OSError as exc:
            raise PersistenceSaveError(
                f"Failed to write session record: {target}"
            ) from exc


class PersistenceSynchronizer:
    """Load the session mapping at startup and write full snapshots after."""

    def __init__(
        self,
        storage: JsonRecordStorage,
        key: str,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._storage = storage
        self._key = key
        self._log = logger or _log
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def key(self) -> str:
        return self._key

    def load(self) -> dict[str, DocumentSession]:
        """Return the persisted sessions; corruption yields an empty mapping.

        The synchronizer counts as loaded afterwards whether or not the read
        succeeded.
        """

        try:
            payload = self._storage.read(self._key)
            if payload is None:
                self._log.info(
                    "No stored sessions found",
                    extra={"storage_key": self._key},
                )
                return {}
            sessions = decode_sessions(payload)
            self._log.info(
                "Loaded stored sessions",
                extra={"storage_key": self._key, "count": len(sessions)},
            )
            return sessions
        except PersistenceLoadError as exc:
            self._log.warning(
                "Failed to load stored sessions; starting empty",
                extra={"storage_key": self._key, "reason": str(exc)},
                exc_info=True,
            )
            return {}
        finally:
            self._loaded = True

    def save(self, sessions: Mapping[str, DocumentSession]) -> bool:
        """Persist a full snapshot; ``False`` when nothing was written."""

        if not self._loaded:
            self._log.debug(
                "Skipping save before load completed",
                extra={"storage_key": self._key},
            )
            return False
        try:
            self._storage.write(self._key, encode_sessions(sessions))
        except PersistenceSaveError as exc:
            self._log.error(
                "Failed to save sessions; keeping in-memory state",
                extra={"storage_key": self._key, "reason": str(exc)},
                exc_info=True,
            )
            return False
        return True


def encode_sessions(
    sessions: Mapping[str, DocumentSession],
) -> dict[str, Any]:
    return {
        session_id: session.to_dict()
        for session_id, session in sessions.items()
    }


def decode_sessions(payload: Any) -> dict[str, DocumentSession]:
    """Decode a stored record; any shape mismatch is treated as corruption."""

    if not isinstance(payload, Mapping):
        raise PersistenceLoadError(
            "Stored session record must be a JSON object."
        )
    sessions: dict[str, DocumentSession] = {}
    for session_id, item in payload.items():
        if not isinstance(item, Mapping):
            raise PersistenceLoadError(
                f"Stored session '{session_id}' must be a JSON object."
            )
        try:
            session = DocumentSession.from_dict(item)
        except (KeyError, ValueError, TypeError) as exc:
            raise PersistenceLoadError(
                f"Stored session '{session_id}' is malformed: {exc!r}"
            ) from exc
        if session.id != session_id:
            raise PersistenceLoadError(
                f"Stored session key '{session_id}' does not match its id."
            )
        sessions[session_id] = session
    return sessions


class _RecordLock:
    """Simple filesystem lock using exclusive file creation.

    The lock file holds the owner's pid. A lock whose mtime is older than
    ``_STALE_LOCK_SECONDS`` is removed and acquisition retried.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def __enter__(self) -> "_RecordLock":
        deadline = time.monotonic() + _LOCK_TIMEOUT_SECONDS
        while True:
            try:
                fd = os.open(
                    self._path,
                    os.O_CREAT | os.O_EXCL | os.O_WRONLY,
                )
            except FileExistsError:
                if self._break_if_stale():
                    continue
                if time.monotonic() > deadline:
                    raise PersistenceSaveError(
                        f"Timed out waiting for record lock: {self._path}"
                    )
                time.sleep(0.05)
                continue
            try:
                os.write(fd, str(os.getpid()).encode("ascii"))
            finally:
                os.close(fd)
            return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self._path.unlink(missing_ok=True)

    def _break_if_stale(self) -> bool:
        try:
            age = time.time() - self._path.stat().st_mtime
        except FileNotFoundError:
            return True
        if age < _STALE_LOCK_SECONDS:
            return False
        _log.warning(
            "Breaking stale record lock",
            extra={"path": str(self._path), "age_seconds": round(age, 1)},
        )
        self._path.unlink(missing_ok=True)
        return True


def _atomic_write_text(path: Path, text: str) -> None:
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        prefix=f".{path.stem}-",
        suffix=".tmp",
    )
    try:
        with handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
