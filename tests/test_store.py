from __future__ import annotations

import pytest

from fixtures import FakeClock, make_questions
from quizmaster.errors import SessionNotFoundError
from quizmaster.models import QuizType, SessionState
from quizmaster.persistence import PersistenceSynchronizer
from quizmaster.store import SessionStore

STORAGE_KEY = "quizmaster_ai_sessions"


def _reload(storage) -> SessionStore:
    fresh = SessionStore(PersistenceSynchronizer(storage, STORAGE_KEY))
    fresh.load()
    return fresh


def test_create_session_defaults_and_persists(store, storage, clock):
    session_id = store.create_session("doc1.txt", "Some text.")

    session = store.get_session(session_id)
    assert session.file_name == "doc1.txt"
    assert session.content == "Some text."
    assert session.state is SessionState.CONFIGURING_QUIZ
    assert session.quiz_type is QuizType.MIXED
    assert session.num_questions == 5
    assert session.last_accessed == clock.now

    assert session_id in _reload(storage)


def test_create_session_generates_distinct_ids(store):
    ids = {store.create_session(f"d{i}.txt", "x") for i in range(5)}

    assert len(ids) == 5
    assert len(store) == 5


def test_create_session_rejects_bad_count(store):
    with pytest.raises(ValueError):
        store.create_session("doc.txt", "x", num_questions=0)
    assert len(store) == 0


def test_update_session_stamps_last_accessed(store):
    session_id = store.create_session("doc1.txt", "x")
    before = store.get_session(session_id).last_accessed

    updated = store.update_session(session_id)

    assert updated.last_accessed > before
    assert store.get_session(session_id) is updated


def test_update_session_replaces_fields(store, storage):
    session_id = store.create_session("doc1.txt", "x")
    questions = tuple(make_questions(2))

    store.update_session(
        session_id,
        state=SessionState.TAKING_QUIZ,
        questions=questions,
        num_questions=2,
    )

    reloaded = _reload(storage).get_session(session_id)
    assert reloaded.state is SessionState.TAKING_QUIZ
    assert reloaded.questions == questions
    assert reloaded.num_questions == 2


@pytest.mark.parametrize(
    "fields",
    [
        {"id": "other"},
        {"content": "rewritten"},
        {"file_name": "renamed.txt"},
        {"last_accessed": 0.0},
        {"colour": "blue"},
        {"num_questions": 0},
        {"num_questions": True},
    ],
)
def test_update_session_rejects_invalid_fields(store, fields):
    session_id = store.create_session("doc1.txt", "x")
    before = store.get_session(session_id)

    with pytest.raises(ValueError):
        store.update_session(session_id, **fields)
    assert store.get_session(session_id) is before


def test_update_missing_session_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.update_session("missing", state=SessionState.ERROR)


def test_delete_session_removes_and_persists(store, storage):
    keep = store.create_session("keep.txt", "x")
    drop = store.create_session("drop.txt", "y")

    store.delete_session(drop)

    assert drop not in store
    assert store.find_session(drop) is None
    reloaded = _reload(storage)
    assert keep in reloaded
    assert drop not in reloaded


def test_delete_missing_session_raises(store):
    with pytest.raises(SessionNotFoundError):
        store.delete_session("missing")


def test_deleted_ids_are_never_reused(synchronizer, clock):
    ids = iter(["a", "a", "b"])
    store = SessionStore(
        synchronizer, clock=clock, id_factory=lambda: next(ids)
    )
    store.load()

    first = store.create_session("one.txt", "x")
    store.delete_session(first)
    second = store.create_session("two.txt", "y")

    assert (first, second) == ("a", "b")


def test_id_allocation_gives_up(synchronizer):
    store = SessionStore(synchronizer, id_factory=lambda: "same")
    store.load()
    store.create_session("one.txt", "x")

    with pytest.raises(RuntimeError):
        store.create_session("two.txt", "y")


def test_list_sessions_most_recent_first(store):
    old = store.create_session("old.txt", "x")
    new = store.create_session("new.txt", "y")

    assert [s.id for s in store.list_sessions()] == [new, old]

    store.update_session(old)

    assert [s.id for s in store.list_sessions()] == [old, new]


def test_sessions_created_before_load_are_merged(storage):
    seeded = SessionStore(PersistenceSynchronizer(storage, STORAGE_KEY))
    seeded.load()
    stored_id = seeded.create_session("stored.txt", "x")

    early = SessionStore(
        PersistenceSynchronizer(storage, STORAGE_KEY), clock=FakeClock()
    )
    early_id = early.create_session("early.txt", "y")
    assert not early.loaded

    early.load()

    assert {stored_id, early_id} <= set(early)
    assert {stored_id, early_id} <= set(_reload(storage))


def test_snapshot_is_a_copy(store):
    session_id = store.create_session("doc1.txt", "x")

    snapshot = store.snapshot()
    snapshot.clear()

    assert session_id in store
