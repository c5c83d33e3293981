from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest
from rich.console import Console

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

ROOT = TESTS_DIR.parent
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from fixtures import (  # noqa: E402
    DocumentFolder,
    FakeClock,
    ScriptedGenerator,
    ScriptedGrader,
)
from quizmaster.controller import QuizController  # noqa: E402
from quizmaster.persistence import (  # noqa: E402
    JsonRecordStorage,
    PersistenceSynchronizer,
)
from quizmaster.store import SessionStore  # noqa: E402

STORAGE_KEY = "quizmaster_ai_sessions"


@pytest.fixture(autouse=True)
def _isolated_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Point the data home at tmp and hide real credentials/config."""

    monkeypatch.setenv("QUIZMASTER_DATA_HOME", str(tmp_path / "home"))
    monkeypatch.delenv("QUIZMASTER_CONFIG", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    yield


@pytest.fixture(autouse=True)
def _restore_app_logger() -> Iterator[None]:
    """Undo handlers and propagation set by ``configure_logger``."""

    logger = logging.getLogger("quizmaster")
    handlers = list(logger.handlers)
    propagate, level = logger.propagate, logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = propagate
    logger.setLevel(level)


@pytest.fixture
def documents(tmp_path: Path) -> DocumentFolder:
    root = tmp_path / "documents"
    root.mkdir()
    return DocumentFolder(root)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(tmp_path: Path) -> JsonRecordStorage:
    return JsonRecordStorage(tmp_path / "storage")


@pytest.fixture
def synchronizer(storage: JsonRecordStorage) -> PersistenceSynchronizer:
    return PersistenceSynchronizer(storage, STORAGE_KEY)


@pytest.fixture
def store(
    synchronizer: PersistenceSynchronizer, clock: FakeClock
) -> SessionStore:
    session_store = SessionStore(synchronizer, clock=clock)
    session_store.load()
    return session_store


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def grader() -> ScriptedGrader:
    return ScriptedGrader()


@pytest.fixture
def controller(
    store: SessionStore,
    generator: ScriptedGenerator,
    grader: ScriptedGrader,
) -> QuizController:
    return QuizController(store, generator, grader, max_questions=20)


@pytest.fixture
def console() -> Console:
    return Console(record=True, width=100, force_terminal=True)
