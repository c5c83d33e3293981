"""Pure Rich projections of session state.

Nothing here mutates a session or talks to the controller; every function
maps a ``DocumentSession`` (or the session list) to a renderable.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from datetime import datetime
from typing import Optional

from rich import box
from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..answers import is_quiz_answered
from ..models import DocumentSession, Question, SessionState

__all__ = [
    "COMMAND_HELP",
    "STATE_LABELS",
    "available_actions",
    "render_actions",
    "render_busy",
    "render_configuration",
    "render_error",
    "render_help",
    "render_quiz",
    "render_review",
    "render_session",
    "render_session_list",
]


STATE_LABELS = {
    SessionState.CONFIGURING_QUIZ: "Configuring",
    SessionState.GENERATING_QUIZ: "Generating",
    SessionState.TAKING_QUIZ: "In progress",
    SessionState.SUBMITTING_QUIZ: "Grading",
    SessionState.REVIEWING_QUIZ: "Reviewed",
    SessionState.ERROR: "Error",
}

COMMAND_HELP = {
    "open": "open <#|id>  open a document from the list",
    "upload": "upload <path>  add a .txt or .md document",
    "delete": "delete [#|id]  delete a document (asks first)",
    "type": "type single|multiple|mixed  choose the quiz type",
    "count": "count <n>  choose the number of questions",
    "generate": "generate  create the quiz",
    "answer": "<q> <o>  pick option o for question q",
    "submit": "submit  send answers for grading",
    "explain": "explain <q>  show or hide feedback for question q",
    "new": "new  start a new quiz on this document",
    "improve": "improve  new quiz focused on weak topics",
    "ok": "ok  dismiss the error and return to configuration",
    "discard": "discard  delete this document and go back",
    "back": "back  return to the document list",
    "help": "help  show this list",
    "quit": "quit  leave quizmaster",
}


def _format_timestamp(value: float) -> str:
    return datetime.fromtimestamp(value).strftime("%Y-%m-%d %H:%M")


def render_session_list(
    sessions: Sequence[DocumentSession],
    *,
    active_id: Optional[str] = None,
    show_ids: bool = False,
) -> RenderableType:
    """Table of documents, most recently accessed first."""

    if not sessions:
        return Panel(
            "No documents yet. Upload a .txt or .md file to start.",
            title="Documents",
            border_style="yellow",
        )
    ordered = sorted(
        sessions, key=lambda session: session.last_accessed, reverse=True
    )
    table = Table(title="Documents", box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Document", overflow="fold")
    table.add_column("State")
    table.add_column("Questions", justify="right")
    table.add_column("Last opened")
    if show_ids:
        table.add_column("Id", overflow="fold", style="dim")
    for index, session in enumerate(ordered, start=1):
        name = Text(session.file_name)
        if session.id == active_id:
            name.stylize("bold green")
        row: list[RenderableType] = [
            str(index),
            name,
            STATE_LABELS[session.state],
            str(len(session.questions) or session.num_questions),
            _format_timestamp(session.last_accessed),
        ]
        if show_ids:
            row.append(session.id)
        table.add_row(*row)
    return table


def render_configuration(
    session: DocumentSession, *, max_questions: int
) -> RenderableType:
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold")
    grid.add_column()
    grid.add_row("Document", Text(session.file_name))
    grid.add_row("Length", f"{len(session.content)} characters")
    grid.add_row("Quiz type", session.quiz_type.label)
    grid.add_row(
        "Questions", f"{session.num_questions} (1-{max_questions})"
    )
    parts: list[RenderableType] = [grid]
    if session.weak_topics:
        parts.append(Text())
        parts.append(
            Text.assemble(
                ("Improvement mode: ", "bold magenta"),
                "the next quiz focuses on ",
                (session.weak_topics, "italic"),
            )
        )
    if not session.content.strip():
        parts.append(Text())
        parts.append(
            Text("The document is empty; nothing to quiz.", style="red")
        )
    return Panel(
        Group(*parts), title="Configure quiz", border_style="cyan"
    )


def _option_marker(question: Question, selected: bool) -> str:
    if question.is_multiple:
        return "[x]" if selected else "[ ]"
    return "(•)" if selected else "( )"


def render_quiz(session: DocumentSession) -> RenderableType:
    """The quiz form: radio markers for single, checkboxes for multiple."""

    answered = sum(
        1 for question in session.questions
        if session.user_answers.get(question.id)
    )
    parts: list[RenderableType] = [
        Text(
            f"{session.file_name}: answered {answered}/"
            f"{len(session.questions)}",
            style="dim",
        )
    ]
    for number, question in enumerate(session.questions, start=1):
        selected = session.user_answers.get(question.id, frozenset())
        body = Table.grid(padding=(0, 1))
        body.add_column(justify="right", style="cyan")
        body.add_column()
        body.add_column()
        for key, option in enumerate(question.options, start=1):
            is_selected = option.text in selected
            text = Text(option.text)
            if is_selected:
                text.stylize("bold green")
            body.add_row(
                str(key), Text(_option_marker(question, is_selected)), text
            )
        kind = "Multiple answers" if question.is_multiple else "Single answer"
        parts.append(
            Panel(
                Group(Text(question.question_text, style="bold"), body),
                title=f"Question {number}",
                subtitle=kind,
                border_style="green" if selected else "blue",
            )
        )
    return Group(*parts)


def render_busy(session: DocumentSession) -> RenderableType:
    if session.state is SessionState.GENERATING_QUIZ:
        message = (
            f"Generating {session.num_questions} questions from "
            f"{session.file_name}..."
        )
    else:
        message = "Grading your answers..."
    return Panel(
        Text(message, style="bold"),
        title=STATE_LABELS[session.state],
        border_style="blue",
    )


def render_review(
    session: DocumentSession, *, expanded: Collection[int] = ()
) -> RenderableType:
    """Score summary and per-question results.

    ``expanded`` holds 1-based question numbers whose bilingual feedback
    is disclosed.
    """

    correction = session.correction
    if correction is None:
        return Panel("No results yet.", title="Results", border_style="yellow")
    style = "green" if correction.percentage >= 50 else "red"
    parts: list[RenderableType] = [
        Panel(
            Text(
                f"Score: {correction.score}/{correction.total} "
                f"({correction.percentage}%)",
                style=f"bold {style}",
            ),
            title="Results",
            border_style=style,
        )
    ]
    if session.weak_topics:
        parts.append(
            Panel(
                Text(session.weak_topics),
                title="Topics to review",
                border_style="magenta",
            )
        )
    table = Table(box=box.SIMPLE, expand=True)
    table.add_column("#", justify="right")
    table.add_column("Question", overflow="fold")
    table.add_column("Your answer", overflow="fold")
    table.add_column("Correct answer", overflow="fold")
    table.add_column("Result", justify="center")
    for number, result in enumerate(correction.results, start=1):
        table.add_row(
            str(number),
            Text(result.question_text),
            Text(", ".join(result.user_answer) or "-"),
            Text(", ".join(result.correct_answer) or "-"),
            Text("correct", style="green")
            if result.is_correct
            else Text("wrong", style="red"),
        )
    parts.append(table)
    for number, result in enumerate(correction.results, start=1):
        if number not in expanded:
            continue
        feedback = Group(
            Text("FR", style="bold"),
            Text(result.feedback_fr or "-"),
            Text(),
            Text("AR", style="bold"),
            Text(result.feedback_ar or "-"),
        )
        parts.append(
            Panel(
                feedback,
                title=f"Explanation {number}",
                border_style="green" if result.is_correct else "red",
            )
        )
    return Group(*parts)


def render_error(session: DocumentSession) -> RenderableType:
    return Panel(
        Group(
            Text(session.error or "An unknown error occurred."),
            Text(),
            Text("Type 'ok' to go back to the configuration.", style="dim"),
        ),
        title="Error",
        border_style="red",
    )


def render_session(
    session: DocumentSession,
    *,
    max_questions: int,
    expanded: Collection[int] = (),
) -> RenderableType:
    state = session.state
    if state is SessionState.CONFIGURING_QUIZ:
        return render_configuration(session, max_questions=max_questions)
    if state is SessionState.TAKING_QUIZ:
        return render_quiz(session)
    if state.is_busy:
        return render_busy(session)
    if state is SessionState.REVIEWING_QUIZ:
        return render_review(session, expanded=expanded)
    return render_error(session)


def available_actions(
    session: Optional[DocumentSession], *, has_sessions: bool = True
) -> list[str]:
    """Commands enabled for the current view, in display order."""

    if session is None:
        actions = ["open", "upload", "delete"] if has_sessions else ["upload"]
        return actions + ["help", "quit"]

    state = session.state
    actions = []
    if state is SessionState.CONFIGURING_QUIZ:
        actions += ["type", "count"]
        if session.content.strip():
            actions.append("generate")
    elif state is SessionState.TAKING_QUIZ:
        actions.append("answer")
        if is_quiz_answered(session.questions, session.user_answers):
            actions.append("submit")
    elif state is SessionState.REVIEWING_QUIZ:
        actions += ["explain", "new"]
        if session.weak_topics:
            actions.append("improve")
    elif state is SessionState.ERROR:
        actions.append("ok")
    if not state.is_busy:
        actions += ["discard", "delete"]
    return actions + ["back", "help", "quit"]


def render_actions(actions: Sequence[str]) -> Text:
    return Text("Commands: " + ", ".join(actions), style="dim")


def render_help(actions: Sequence[str]) -> RenderableType:
    table = Table(title="Commands", box=box.SIMPLE, show_header=False)
    table.add_column("Usage")
    for action in actions:
        table.add_row(Text(COMMAND_HELP.get(action, action)))
    return table
