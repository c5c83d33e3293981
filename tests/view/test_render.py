from __future__ import annotations

import pytest
from rich.console import Console

from fixtures import make_correction, make_question
from quizmaster.models import DocumentSession, QuizType, SessionState
from quizmaster.view.render import (
    available_actions,
    render_busy,
    render_help,
    render_quiz,
    render_review,
    render_session,
    render_session_list,
)


def _session(session_id="s1", **overrides) -> DocumentSession:
    fields = dict(
        id=session_id,
        file_name="doc1.txt",
        content="Some content.",
        quiz_type=QuizType.MIXED,
        num_questions=5,
        last_accessed=1_700_000_000.0,
    )
    fields.update(overrides)
    return DocumentSession(**fields)


def _text(console: Console, renderable) -> str:
    console.print(renderable)
    return console.export_text()


def test_empty_list_prompts_for_upload(console):
    text = _text(console, render_session_list([]))

    assert "No documents yet" in text


def test_list_is_most_recent_first(console):
    old = _session("old", file_name="old.txt", last_accessed=100.0)
    new = _session("new", file_name="new[1].txt", last_accessed=200.0)

    text = _text(console, render_session_list([old, new], show_ids=True))

    assert text.index("new[1].txt") < text.index("old.txt")
    assert "Configuring" in text
    assert "Id" in text


def test_configuration_shows_settings_and_focus(console):
    session = _session(quiz_type=QuizType.SINGLE, weak_topics="Topic X")

    text = _text(console, render_session(session, max_questions=20))

    assert "Configure quiz" in text
    assert "Single answer" in text
    assert "5 (1-20)" in text
    assert "Improvement mode" in text
    assert "Topic X" in text


def test_configuration_warns_on_empty_document(console):
    text = _text(
        console, render_session(_session(content=""), max_questions=20)
    )

    assert "nothing to quiz" in text


def test_quiz_markers_reflect_selection(console):
    session = _session(
        state=SessionState.TAKING_QUIZ,
        questions=(
            make_question("q1"),
            make_question("q2", correct=("A", "B")),
        ),
        user_answers={"q1": frozenset({"B"}), "q2": frozenset({"A", "C"})},
    )

    text = _text(console, render_quiz(session))

    assert "answered 2/2" in text
    assert "(•)" in text
    assert "( )" in text
    assert "[x]" in text
    assert "[ ]" in text
    assert "Multiple answers" in text
    assert "Single answer" in text


def test_busy_messages(console):
    generating = _session(state=SessionState.GENERATING_QUIZ)
    grading = _session(state=SessionState.SUBMITTING_QUIZ)

    assert "Generating 5 questions" in _text(console, render_busy(generating))
    assert "Grading your answers" in _text(console, render_busy(grading))


def test_review_discloses_feedback_on_request(console):
    session = _session(
        state=SessionState.REVIEWING_QUIZ,
        correction=make_correction([True, True, False], weak_topics="Cells"),
        weak_topics="Cells",
    )

    collapsed = _text(console, render_review(session))
    assert "Score: 2/3 (67%)" in collapsed
    assert "Topics to review" in collapsed
    assert "wrong" in collapsed
    assert "Explication" not in collapsed

    expanded = _text(console, render_review(session, expanded={3}))
    assert "Explanation 3" in expanded
    assert "Explication 3" in expanded
    assert "Explication 1" not in expanded


def test_error_view_offers_acknowledgement(console):
    session = _session(state=SessionState.ERROR, error="Model unavailable.")

    text = _text(console, render_session(session, max_questions=20))

    assert "Model unavailable." in text
    assert "Type 'ok'" in text


def test_help_lists_usage(console):
    text = _text(console, render_help(["open", "delete"]))

    assert "open <#|id>" in text
    assert "delete [#|id]" in text


@pytest.mark.parametrize(
    "session, has_sessions, expected",
    [
        (None, False, ["upload", "help", "quit"]),
        (None, True, ["open", "upload", "delete", "help", "quit"]),
        (
            _session(),
            True,
            [
                "type",
                "count",
                "generate",
                "discard",
                "delete",
                "back",
                "help",
                "quit",
            ],
        ),
        (
            _session(state=SessionState.GENERATING_QUIZ),
            True,
            ["back", "help", "quit"],
        ),
        (
            _session(state=SessionState.ERROR, error="x"),
            True,
            ["ok", "discard", "delete", "back", "help", "quit"],
        ),
    ],
)
def test_available_actions(session, has_sessions, expected):
    assert available_actions(session, has_sessions=has_sessions) == expected


def test_submit_offered_only_when_all_answered():
    questions = (make_question("q1"), make_question("q2"))
    partial = _session(
        state=SessionState.TAKING_QUIZ,
        questions=questions,
        user_answers={"q1": frozenset({"A"})},
    )
    complete = _session(
        state=SessionState.TAKING_QUIZ,
        questions=questions,
        user_answers={"q1": frozenset({"A"}), "q2": frozenset({"B"})},
    )

    assert "submit" not in available_actions(partial)
    assert "submit" in available_actions(complete)


def test_improve_offered_only_with_weak_topics():
    correction = make_correction([True])
    reviewed = _session(
        state=SessionState.REVIEWING_QUIZ, correction=correction
    )
    weak = _session(
        state=SessionState.REVIEWING_QUIZ,
        correction=correction,
        weak_topics="Cells",
    )

    assert "improve" not in available_actions(reviewed)
    assert "improve" in available_actions(weak)
