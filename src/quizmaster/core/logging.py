"""JSON-lines logging for quizmaster.

``configure_logger`` is called once by the CLI for the ``quizmaster`` logger;
every module logs through a child logger and inherits the managed handlers.
Structured context goes in ``extra=`` and ends up under the ``"extra"`` key
of each JSON line.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator, Mapping

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]


_FILE_TAG = "_quizmaster_file"
_CONSOLE_TAG = "_quizmaster_console"

# Attributes every LogRecord carries; anything else came from ``extra=``.
_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record: time, level, logger, message, extras."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS
        }
        if context:
            payload["extra"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=False)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    filename: str | None = None,
) -> tuple[logging.Logger, Path]:
    """Attach the managed handlers to ``name`` and return it with its file.

    Reconfiguring the same logger keeps a single file handler (replaced only
    when the target file changes) and at most one stderr mirror, present
    only while ``verbose`` is set.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    directory = _prepare_log_dir(log_dir)
    target = directory / (filename or f"{name.rsplit('.', 1)[-1]}.log")
    handler, log_path = _file_handler_for(
        logger, target, max_bytes=max_bytes, backup_count=backup_count
    )
    handler.setLevel(logging.DEBUG if verbose else _level_number(level))

    mirrors = list(_tagged(logger, _CONSOLE_TAG))
    if verbose and not mirrors:
        logger.addHandler(_stderr_mirror())
    elif not verbose:
        for mirror in mirrors:
            logger.removeHandler(mirror)
            mirror.close()
    return logger, log_path


def _tagged(logger: logging.Logger, tag: str) -> Iterator[logging.Handler]:
    return (
        handler
        for handler in list(logger.handlers)
        if getattr(handler, tag, False)
    )


def _level_number(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _file_handler_for(
    logger: logging.Logger,
    path: Path,
    *,
    max_bytes: int,
    backup_count: int,
) -> tuple[logging.Handler, Path]:
    for existing in _tagged(logger, _FILE_TAG):
        if getattr(existing, "baseFilename", None) == os.path.abspath(path):
            return existing, path
        logger.removeHandler(existing)
        existing.close()

    try:
        handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    except PermissionError:
        path = _prepare_log_dir(_fallback_log_dir()) / path.name
        handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    handler.setFormatter(JsonLogFormatter())
    setattr(handler, _FILE_TAG, True)
    logger.addHandler(handler)
    return handler, path


def _stderr_mirror() -> logging.Handler:
    mirror = logging.StreamHandler(stream=sys.stderr)
    mirror.setLevel(logging.DEBUG)
    mirror.setFormatter(
        logging.Formatter("%(levelname)s %(name)s: %(message)s")
    )
    setattr(mirror, _CONSOLE_TAG, True)
    return mirror


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (frozenset, set)):
        return sorted((_jsonable(item) for item in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return repr(value)


def _prepare_log_dir(log_dir: Path) -> Path:
    """Create ``log_dir``; on a permission error use the tmp fallback."""
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        log_dir = _fallback_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _fallback_log_dir() -> Path:
    return Path(tempfile.gettempdir()) / "quizmaster-logs"
