from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

import pytest

from quizmaster.core import logging as core_logging


def _drop_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def fresh_logger(request):
    names = []

    def _factory(suffix: str) -> str:
        name = f"quizmaster.test_{suffix}"
        names.append(name)
        return name

    yield _factory
    for name in names:
        _drop_handlers(logging.getLogger(name))


def test_configure_logger_writes_json_lines(tmp_path, fresh_logger):
    logger, log_path = core_logging.configure_logger(
        fresh_logger("json"),
        log_dir=tmp_path / "logs",
        filename="test.log",
    )

    logger.info(
        "Session state changed",
        extra={
            "session_id": "abc",
            "from_state": "CONFIGURING_QUIZ",
            "to_state": "GENERATING_QUIZ",
        },
    )
    try:
        raise ValueError("boom")
    except ValueError:
        logger.exception(
            "with error",
            extra={"paths": [Path("a"), 1], "ids": frozenset({"x"})},
        )
    for handler in logger.handlers:
        handler.flush()

    lines = log_path.read_text(encoding="utf-8").strip().splitlines()
    first = json.loads(lines[0])
    assert first["message"] == "Session state changed"
    assert first["level"] == "INFO"
    assert first["extra"] == {
        "session_id": "abc",
        "from_state": "CONFIGURING_QUIZ",
        "to_state": "GENERATING_QUIZ",
    }
    last = json.loads(lines[-1])
    assert "ValueError: boom" in last["exception"]
    assert last["extra"]["paths"] == ["a", 1]
    assert last["extra"]["ids"] == ["x"]


def test_default_filename_uses_last_name_segment(tmp_path, fresh_logger):
    _, log_path = core_logging.configure_logger(
        fresh_logger("segment"), log_dir=tmp_path
    )

    assert log_path.name == "test_segment.log"


def test_level_filters_file_output(tmp_path, fresh_logger):
    logger, log_path = core_logging.configure_logger(
        fresh_logger("level"),
        log_dir=tmp_path,
        level="warning",
        filename="level.log",
    )

    logger.info("hidden")
    logger.warning("shown")
    for handler in logger.handlers:
        handler.flush()

    messages = [
        json.loads(line)["message"]
        for line in log_path.read_text(encoding="utf-8").splitlines()
    ]
    assert messages == ["shown"]


def test_verbose_toggles_a_single_console_handler(tmp_path, fresh_logger):
    name = fresh_logger("toggle")

    def console_handlers(logger):
        return [
            handler
            for handler in logger.handlers
            if getattr(handler, "_quizmaster_console", False)
        ]

    logger, _ = core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=True, filename="toggle.log"
    )
    core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=True, filename="toggle.log"
    )
    assert len(console_handlers(logger)) == 1

    core_logging.configure_logger(
        name, log_dir=tmp_path, verbose=False, filename="toggle.log"
    )
    assert console_handlers(logger) == []


def test_reconfigure_reuses_file_handler(tmp_path, fresh_logger):
    name = fresh_logger("reuse")

    logger, _ = core_logging.configure_logger(
        name, log_dir=tmp_path, filename="reuse.log"
    )
    core_logging.configure_logger(name, log_dir=tmp_path, filename="reuse.log")

    files = [
        handler
        for handler in logger.handlers
        if getattr(handler, "_quizmaster_file", False)
    ]
    assert len(files) == 1


def test_blocked_log_dir_falls_back(tmp_path, monkeypatch, fresh_logger):
    target = tmp_path / "blocked"
    fallback = tmp_path / "fallback"
    monkeypatch.setattr(core_logging, "_fallback_log_dir", lambda: fallback)
    original_mkdir = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):  # noqa: ANN001
        if self == target:
            raise PermissionError("denied")
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)

    _, log_path = core_logging.configure_logger(
        fresh_logger("blocked"), log_dir=target, filename="blocked.log"
    )

    assert log_path.parent == fallback
    assert log_path.exists()


def test_rotating_handler_permission_falls_back(
    tmp_path, monkeypatch, fresh_logger
):
    calls = {"count": 0}
    fallback = tmp_path / "rotate-fallback"
    original_handler = core_logging.RotatingFileHandler

    def fake_handler(path, *args, **kwargs):  # noqa: ANN001
        calls["count"] += 1
        if calls["count"] == 1:
            raise PermissionError("denied")
        return original_handler(path, *args, **kwargs)

    monkeypatch.setattr(core_logging, "RotatingFileHandler", fake_handler)
    monkeypatch.setattr(core_logging, "_fallback_log_dir", lambda: fallback)

    _, log_path = core_logging.configure_logger(
        fresh_logger("rotate"),
        log_dir=tmp_path / "primary",
        filename="rotate.log",
    )

    assert log_path.parent == fallback
    assert calls["count"] == 2


def test_fallback_log_dir_uses_tempdir(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "gettempdir", lambda: str(tmp_path))

    assert core_logging._fallback_log_dir() == tmp_path / "quizmaster-logs"


def test_child_loggers_reach_the_managed_file(tmp_path, fresh_logger):
    name = fresh_logger("parent")
    _, log_path = core_logging.configure_logger(
        name, log_dir=tmp_path, filename="parent.log"
    )

    logging.getLogger(f"{name}.store").info("child message")
    for handler in logging.getLogger(name).handlers:
        handler.flush()

    payload = json.loads(log_path.read_text(encoding="utf-8").splitlines()[0])
    assert payload["logger"] == f"{name}.store"
    assert payload["message"] == "child message"
