from __future__ import annotations

from typing import Iterable

import pytest

from fixtures import make_correction, make_questions
from quizmaster.models import QuizType, SessionState
from quizmaster.view.app import (
    AppCommand,
    QuizApp,
    clamp_question_count,
    parse_command,
    run_app,
)


def _inputs(lines: Iterable[str]):
    it = iter(lines)
    return lambda: next(it)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("2 3", AppCommand("answer", ("2", "3"))),
        ("a 1 4", AppCommand("answer", ("1", "4"))),
        (
            "upload notes/my file.md",
            AppCommand("upload", ("notes/my file.md",)),
        ),
        ("T Multiple", AppCommand("type", ("Multiple",))),
        ("delete", AppCommand("delete")),
        ("del 2", AppCommand("delete", ("2",))),
        ("reset", AppCommand("discard")),
        ("?", AppCommand("help")),
        ("exit", AppCommand("quit")),
        ("  gen  ", AppCommand("generate")),
    ],
)
def test_parse_command(raw, expected):
    assert parse_command(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [None, "", "   ", "dance", "2", "2 3 4", "a x y", "open", "submit now"],
)
def test_parse_command_rejects(raw):
    assert parse_command(raw) is None


@pytest.mark.parametrize(
    "raw, expected", [("5", 5), ("0", 1), ("-3", 1), (" 99 ", 20)]
)
def test_clamp_question_count(raw, expected):
    assert clamp_question_count(raw, 20) == expected


def test_clamp_question_count_rejects_text():
    with pytest.raises(ValueError):
        clamp_question_count("five", 20)


def test_full_quiz_flow(controller, generator, grader, console, documents):
    path = documents.document("doc1.txt", "Chlorophyll absorbs light.")
    generator.outcomes.append(make_questions(3))
    grader.outcomes.append(
        make_correction([True, True, False], weak_topics="Topic X")
    )

    reason = run_app(
        controller,
        console,
        _inputs(
            [
                f"upload {path}",
                "count 50",
                "type single",
                "generate",
                "1 1",
                "2 1",
                "3 2",
                "submit",
                "explain 3",
                "improve",
                "quit",
            ]
        ),
    )

    assert reason == "quit"
    text = console.export_text()
    assert "Loaded doc1.txt." in text
    assert "Using 20 questions." in text
    assert "Generating 20 questions from doc1.txt" in text
    assert "Score: 2/3 (67%)" in text
    assert "Explication 3" in text
    assert "Improvement mode" in text
    assert generator.calls[0]["quiz_type"] is QuizType.SINGLE
    assert grader.calls[0]["answers"] == {
        "q1": ["A"],
        "q2": ["A"],
        "q3": ["B"],
    }
    session = controller.active_session
    assert session.state is SessionState.CONFIGURING_QUIZ
    assert session.weak_topics == "Topic X"


def test_unavailable_and_unknown_commands(controller, console):
    controller.create_session("doc1.txt", "text")

    run_app(controller, console, _inputs(["submit", "dance", "quit"]))

    text = console.export_text()
    assert "'submit' is not available right now." in text
    assert "Unrecognized command." in text


def test_generation_failure_then_acknowledge(controller, generator, console):
    controller.create_session("doc1.txt", "text")
    generator.outcomes.append([])

    run_app(controller, console, _inputs(["generate", "ok", "quit"]))

    text = console.export_text()
    assert "returned no questions" in text
    assert controller.active_session.state is SessionState.CONFIGURING_QUIZ


def test_open_and_delete_from_list(controller, console):
    first = controller.create_session("first.txt", "a")
    controller.create_session("second.txt", "b")
    controller.deselect_session()

    run_app(
        controller,
        console,
        _inputs(["open 2", "back", "delete 2", "n", "delete 2", "y", "quit"]),
    )

    text = console.export_text()
    assert "Kept." in text
    assert "Deleted second.txt." in text
    assert first in controller.store
    assert len(controller.store) == 1
    assert controller.active_session is None


def test_unknown_document_is_reported(controller, console):
    controller.create_session("doc1.txt", "a")
    controller.deselect_session()

    run_app(controller, console, _inputs(["open 7", "quit"]))

    assert "No document matches '7'." in console.export_text()


def test_ingestion_error_is_printed(controller, console, documents):
    missing = documents.root / "missing.txt"

    run_app(controller, console, _inputs([f"upload {missing}", "quit"]))

    assert "File not found" in console.export_text()
    assert len(controller.store) == 0


def test_discard_requires_confirmation(controller, console):
    session_id = controller.create_session("doc1.txt", "a")

    run_app(controller, console, _inputs(["discard", "y", "quit"]))

    assert session_id not in controller.store
    assert controller.active_session is None


def test_interrupt_ends_loop(controller, console):
    def provider():
        raise EOFError

    assert run_app(controller, console, provider) == "interrupted"
    assert "Session interrupted." in console.export_text()


def test_expanded_feedback_resets_on_session_change(
    controller, generator, grader, console
):
    controller.create_session("doc1.txt", "a")
    generator.outcomes.append(make_questions(1))
    controller.generate_quiz()
    controller.record_answer("q1", "A", False)
    grader.outcomes.append(make_correction([True]))
    controller.submit_quiz()
    app = QuizApp(controller, console, _inputs([]))
    app.render()
    app.apply(AppCommand("explain", ("1",)))
    assert app.expanded == {1}

    controller.create_session("doc2.txt", "b")
    app.render()

    assert app.expanded == set()
