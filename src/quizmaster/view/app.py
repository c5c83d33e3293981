"""Interactive Rich loop mapping typed commands onto controller actions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Literal, Optional

from rich.console import Console
from rich.markup import escape

from ..controller import QuizController
from ..errors import QuizMasterError
from ..models import DocumentSession, QuizType
from .render import (
    available_actions,
    render_actions,
    render_busy,
    render_help,
    render_session,
    render_session_list,
)

__all__ = [
    "AppCommand",
    "InputProvider",
    "QuizApp",
    "clamp_question_count",
    "parse_command",
    "run_app",
]


InputProvider = Callable[[], str]
ExitReason = Literal["quit", "interrupted"]
CommandType = Literal[
    "open",
    "upload",
    "delete",
    "discard",
    "back",
    "type",
    "count",
    "generate",
    "answer",
    "submit",
    "explain",
    "new",
    "improve",
    "ok",
    "help",
    "quit",
]

_log = logging.getLogger(__name__)

_ALIASES: dict[str, CommandType] = {
    "o": "open",
    "open": "open",
    "u": "upload",
    "upload": "upload",
    "d": "delete",
    "del": "delete",
    "delete": "delete",
    "discard": "discard",
    "reset": "discard",
    "b": "back",
    "back": "back",
    "t": "type",
    "type": "type",
    "c": "count",
    "count": "count",
    "g": "generate",
    "gen": "generate",
    "generate": "generate",
    "a": "answer",
    "answer": "answer",
    "s": "submit",
    "submit": "submit",
    "e": "explain",
    "explain": "explain",
    "n": "new",
    "new": "new",
    "i": "improve",
    "improve": "improve",
    "ok": "ok",
    "dismiss": "ok",
    "h": "help",
    "?": "help",
    "help": "help",
    "q": "quit",
    "quit": "quit",
    "exit": "quit",
}

# Commands whose single argument is the remainder of the line.
_REST_ARG = frozenset({"open", "upload", "type", "count", "explain"})

_INTERRUPTS = (EOFError, KeyboardInterrupt, StopIteration)


@dataclass(frozen=True)
class AppCommand:
    """Normalized user command parsed from console input."""

    type: CommandType
    args: tuple[str, ...] = ()


def parse_command(raw: str | None) -> AppCommand | None:
    """Parse raw input; ``None`` means unrecognized or missing arguments.

    Two bare numbers (``"2 3"``) are shorthand for ``answer 2 3``.
    """

    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None
    head, _, rest = text.partition(" ")
    rest = rest.strip()
    if head.isdigit():
        numbers = [head] + rest.split()
        if len(numbers) == 2 and all(item.isdigit() for item in numbers):
            return AppCommand("answer", tuple(numbers))
        return None
    kind = _ALIASES.get(head.lower())
    if kind is None:
        return None
    if kind == "answer":
        numbers = rest.split()
        if len(numbers) != 2 or not all(item.isdigit() for item in numbers):
            return None
        return AppCommand("answer", tuple(numbers))
    if kind in _REST_ARG:
        if not rest:
            return None
        return AppCommand(kind, (rest,))
    if kind == "delete" and rest:
        return AppCommand(kind, (rest,))
    if rest:
        return None
    return AppCommand(kind)


def clamp_question_count(raw: str, max_questions: int) -> int:
    """Parse and clamp a question count into ``[1, max_questions]``.

    Raises ``ValueError`` when ``raw`` is not an integer.
    """

    value = int(raw.strip())
    return max(1, min(value, max_questions))


@dataclass
class QuizApp:
    """Session-level UI state shared by the Rich loop.

    ``expanded`` holds the question numbers whose feedback is disclosed on
    the review screen; it resets whenever another session becomes active.
    """

    controller: QuizController
    console: Console
    input_provider: InputProvider
    expanded: set[int] = field(default_factory=set)
    _viewing: Optional[str] = field(default=None, init=False)

    def run(self) -> ExitReason:
        while True:
            self.render()
            try:
                raw = self.input_provider()
            except _INTERRUPTS:
                self.console.print("\n[bold yellow]Session interrupted.[/]")
                return "interrupted"
            command = parse_command(raw)
            if command is None:
                self.console.print(
                    "[red]Unrecognized command. Type 'help' for the list.[/]"
                )
                continue
            if command.type == "quit":
                return "quit"
            try:
                self.apply(command)
            except QuizMasterError as exc:
                self.console.print(f"[red]{escape(str(exc))}[/red]")
            except _INTERRUPTS:
                self.console.print("\n[bold yellow]Session interrupted.[/]")
                return "interrupted"

    def render(self) -> None:
        session = self.controller.active_session
        if self._viewing != self.controller.active_session_id:
            self.expanded.clear()
            self._viewing = self.controller.active_session_id
        self.console.print()
        if session is None:
            sessions = self.controller.list_sessions()
            self.console.print(render_session_list(sessions))
        else:
            self.console.rule(escape(session.file_name))
            self.console.print(
                render_session(
                    session,
                    max_questions=self.controller.max_questions,
                    expanded=self.expanded,
                )
            )
        self.console.print(render_actions(self.actions(session)))

    def actions(self, session: Optional[DocumentSession]) -> list[str]:
        return available_actions(
            session, has_sessions=bool(len(self.controller.store))
        )

    def apply(self, command: AppCommand) -> None:
        actions = self.actions(self.controller.active_session)
        if command.type == "help":
            self.console.print(render_help(actions))
            return
        if command.type not in actions:
            self.console.print(
                f"[red]'{command.type}' is not available right now.[/red]"
            )
            return
        getattr(self, f"_do_{command.type}")(*command.args)

    # -- document list -------------------------------------------------

    def _resolve(self, token: str) -> Optional[DocumentSession]:
        """Resolve a 1-based list position or a session id."""
        sessions = self.controller.list_sessions()
        if token.isdigit():
            index = int(token)
            if 1 <= index <= len(sessions):
                return sessions[index - 1]
        for session in sessions:
            if session.id == token:
                return session
        self.console.print(
            f"[red]No document matches '{escape(token)}'.[/red]"
        )
        return None

    def _confirm(self, prompt: str) -> bool:
        self.console.print(f"[bold yellow]{escape(prompt)} \\[y/N][/]")
        answer = self.input_provider().strip().lower()
        return answer in {"y", "yes"}

    def _do_open(self, token: str) -> None:
        session = self._resolve(token)
        if session is not None:
            self.controller.select_session(session.id)

    def _do_upload(self, raw_path: str) -> None:
        path = Path(raw_path).expanduser()
        session_id = self.controller.ingest_file(path)
        _log.info(
            "Uploaded document",
            extra={"session_id": session_id, "path": str(path)},
        )
        self.console.print(f"[green]Loaded {escape(path.name)}.[/green]")

    def _do_delete(self, token: Optional[str] = None) -> None:
        if token is None:
            session = self.controller.active_session
            if session is None:
                self.console.print("[red]Say which document to delete.[/red]")
                return
        else:
            session = self._resolve(token)
            if session is None:
                return
        if session.state.is_busy:
            self.console.print(
                "[red]Wait for the current request to finish first.[/red]"
            )
            return
        if not self._confirm(
            f"Delete '{session.file_name}'? This cannot be undone."
        ):
            self.console.print("Kept.")
            return
        self.controller.delete_session(session.id)
        self.console.print(f"Deleted {escape(session.file_name)}.")

    # -- active session ------------------------------------------------

    def _do_discard(self) -> None:
        session = self.controller.active_session
        if session is None:
            return
        if not self._confirm(
            f"Discard '{session.file_name}' and its quiz?"
        ):
            self.console.print("Kept.")
            return
        self.controller.discard_session()

    def _do_back(self) -> None:
        self.controller.deselect_session()

    def _do_type(self, raw: str) -> None:
        try:
            quiz_type = QuizType.parse(raw)
        except ValueError:
            self.console.print(
                "[red]Quiz type must be single, multiple or mixed.[/red]"
            )
            return
        self.controller.configure(quiz_type=quiz_type)

    def _do_count(self, raw: str) -> None:
        maximum = self.controller.max_questions
        try:
            count = clamp_question_count(raw, maximum)
        except ValueError:
            self.console.print(
                f"[red]Enter a whole number between 1 and {maximum}.[/red]"
            )
            return
        if str(count) != raw.strip():
            self.console.print(f"Using {count} questions.")
        self.controller.configure(num_questions=count)

    def _do_generate(self) -> None:
        request = self.controller.begin_generation()
        session = self.controller.store.get_session(request.session_id)
        self.console.print(render_busy(session))
        self.controller.run_generation(request)

    def _do_answer(self, raw_question: str, raw_option: str) -> None:
        session = self.controller.active_session
        if session is None:
            return
        q_index, o_index = int(raw_question), int(raw_option)
        if not 1 <= q_index <= len(session.questions):
            self.console.print(f"[red]No question {q_index}.[/red]")
            return
        question = session.questions[q_index - 1]
        if not 1 <= o_index <= len(question.options):
            self.console.print(
                f"[red]Question {q_index} has no option {o_index}.[/red]"
            )
            return
        self.controller.record_answer(
            question.id,
            question.options[o_index - 1].text,
            question.is_multiple,
        )

    def _do_submit(self) -> None:
        request = self.controller.begin_submission()
        session = self.controller.store.get_session(request.session_id)
        self.console.print(render_busy(session))
        self.controller.run_submission(request)

    def _do_explain(self, raw: str) -> None:
        session = self.controller.active_session
        total = 0
        if session is not None and session.correction is not None:
            total = session.correction.total
        if not raw.isdigit() or not 1 <= int(raw) <= total:
            self.console.print(
                f"[red]No result numbered '{escape(raw)}'.[/red]"
            )
            return
        self.expanded ^= {int(raw)}

    def _do_new(self) -> None:
        self.controller.start_new_quiz()

    def _do_improve(self) -> None:
        self.controller.improve_weak_topics()

    def _do_ok(self) -> None:
        self.controller.acknowledge_error()


def run_app(
    controller: QuizController,
    console: Console,
    input_provider: InputProvider,
) -> ExitReason:
    """Run the document list / quiz loop until the user quits."""

    return QuizApp(controller, console, input_provider).run()
