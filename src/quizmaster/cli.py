"""Command-line entry point for quizmaster."""

from __future__ import annotations

import argparse
import functools
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape

from . import __version__
from .controller import QuizController
from .core import config as config_mod
from .core.ai import load_client
from .core.logging import configure_logger
from .core.workspace import WorkspaceError, WorkspaceLayout, ensure_workspace
from .errors import IngestionError, SessionNotFoundError
from .manager import OpenAIQuizGenerator, OpenAIQuizGrader
from .persistence import JsonRecordStorage, PersistenceSynchronizer
from .store import SessionStore
from .view.app import InputProvider, run_app
from .view.render import render_session, render_session_list


@dataclass
class _Runtime:
    config: config_mod.QuizMasterConfig
    layout: WorkspaceLayout
    logger: logging.Logger
    controller: QuizController


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quizmaster",
        description="Turn text documents into AI-generated quizzes.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to quizmaster.toml (defaults to the data home).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Mirror debug logs to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Create the data home and write the config template.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file if present.",
    )

    upload_parser = subparsers.add_parser(
        "upload",
        help="Create a session from a .txt or .md document.",
    )
    upload_parser.add_argument("path", help="Document to quiz yourself on.")
    upload_parser.add_argument(
        "--open",
        action="store_true",
        help="Start the interactive session right away.",
    )

    subparsers.add_parser("list", help="List saved document sessions.")

    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a document session (irreversible).",
    )
    delete_parser.add_argument("session_id", help="Session id to delete.")
    delete_parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation.",
    )

    open_parser = subparsers.add_parser(
        "open",
        help="Start the interactive quiz session.",
    )
    open_parser.add_argument(
        "session_id",
        nargs="?",
        help="Session to open (defaults to the document list).",
    )

    show_parser = subparsers.add_parser(
        "show",
        help="Print a session once without prompting.",
    )
    show_parser.add_argument("session_id", help="Session id to show.")
    return parser


def _to_path(value: str | None) -> Path | None:
    if value is None:
        return None
    return Path(value).expanduser().resolve()


def _build_generator(cfg: config_mod.QuizMasterConfig) -> OpenAIQuizGenerator:
    openai_cfg = cfg.openai
    return OpenAIQuizGenerator(
        model=openai_cfg.generation_model,
        temperature=openai_cfg.temperature,
        max_tokens=openai_cfg.max_output_tokens,
        client_factory=functools.partial(
            load_client,
            api_base=openai_cfg.api_base,
            timeout=openai_cfg.request_timeout_seconds,
        ),
    )


def _build_grader(cfg: config_mod.QuizMasterConfig) -> OpenAIQuizGrader:
    openai_cfg = cfg.openai
    return OpenAIQuizGrader(
        model=openai_cfg.grading_model,
        temperature=openai_cfg.temperature,
        max_tokens=openai_cfg.max_output_tokens,
        client_factory=functools.partial(
            load_client,
            api_base=openai_cfg.api_base,
            timeout=openai_cfg.request_timeout_seconds,
        ),
    )


def _build_runtime(args: argparse.Namespace) -> _Runtime:
    cfg = config_mod.load_config(explicit_path=_to_path(args.config))
    layout = ensure_workspace(path=cfg.data_home_override)
    logger, _ = configure_logger(
        "quizmaster",
        log_dir=layout.path_for("logs"),
        level=cfg.logging.level,
        verbose=args.verbose or cfg.logging.verbose,
    )
    storage = JsonRecordStorage(layout.path_for("storage"))
    store = SessionStore(PersistenceSynchronizer(storage, cfg.storage.key))
    store.load()
    controller = QuizController(
        store,
        _build_generator(cfg),
        _build_grader(cfg),
        max_questions=cfg.quiz.max_questions,
        default_quiz_type=cfg.quiz.default_quiz_type,
        default_num_questions=cfg.quiz.default_num_questions,
    )
    return _Runtime(
        config=cfg, layout=layout, logger=logger, controller=controller
    )


def _handle_init(
    args: argparse.Namespace, console: Console, _input: InputProvider
) -> int:
    layout = ensure_workspace()
    target = config_mod.resolve_config_path(
        explicit_path=_to_path(args.config)
    )
    config_mod.write_template(target, overwrite=args.force)
    console.print(f"Workspace ready at {escape(str(layout.home))}")
    console.print(f"Wrote config template to {escape(str(target))}")
    return 0


def _handle_upload(
    args: argparse.Namespace, console: Console, input_provider: InputProvider
) -> int:
    runtime = _build_runtime(args)
    session_id = runtime.controller.ingest_file(Path(args.path).expanduser())
    console.print(session_id)
    if args.open:
        run_app(runtime.controller, console, input_provider)
    return 0


def _handle_list(
    args: argparse.Namespace, console: Console, _input: InputProvider
) -> int:
    runtime = _build_runtime(args)
    console.print(
        render_session_list(runtime.controller.list_sessions(), show_ids=True)
    )
    return 0


def _handle_delete(
    args: argparse.Namespace, console: Console, input_provider: InputProvider
) -> int:
    runtime = _build_runtime(args)
    session = runtime.controller.store.get_session(args.session_id)
    if not args.yes:
        console.print(
            f"Delete '{escape(session.file_name)}'? "
            "This cannot be undone. \\[y/N]"
        )
        if input_provider().strip().lower() not in {"y", "yes"}:
            console.print("Kept.")
            return 1
    runtime.controller.delete_session(session.id)
    console.print(f"Deleted {escape(session.file_name)}.")
    return 0


def _handle_open(
    args: argparse.Namespace, console: Console, input_provider: InputProvider
) -> int:
    runtime = _build_runtime(args)
    controller = runtime.controller
    recovered = controller.recover_interrupted()
    if recovered:
        runtime.logger.warning(
            "Recovered interrupted sessions",
            extra={"session_ids": recovered},
        )
    if args.session_id:
        controller.select_session(args.session_id)
    run_app(controller, console, input_provider)
    return 0


def _handle_show(
    args: argparse.Namespace, console: Console, _input: InputProvider
) -> int:
    runtime = _build_runtime(args)
    session = runtime.controller.store.get_session(args.session_id)
    total = session.correction.total if session.correction else 0
    console.print(
        render_session(
            session,
            max_questions=runtime.config.quiz.max_questions,
            expanded=range(1, total + 1),
        )
    )
    return 0


_HANDLERS = {
    "init": _handle_init,
    "upload": _handle_upload,
    "list": _handle_list,
    "delete": _handle_delete,
    "open": _handle_open,
    "show": _handle_show,
}


def main(
    argv: Sequence[str] | None = None,
    *,
    console: Console | None = None,
    input_provider: InputProvider | None = None,
) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv) if argv is not None else None)
    except SystemExit as exc:  # pragma: no cover - argparse already handles
        return int(exc.code or 0)

    out = console or Console()
    read = input_provider or functools.partial(out.input, "> ")
    handler = _HANDLERS[args.command]
    try:
        return handler(args, out, read)
    except (config_mod.ConfigError, WorkspaceError) as exc:
        _print_error(str(exc))
        return 2
    except (IngestionError, SessionNotFoundError) as exc:
        _print_error(str(exc))
        return 1
    except (EOFError, KeyboardInterrupt):
        _print_error("Interrupted.")
        return 130


def _print_error(message: str) -> None:
    sys.stderr.write(message + "\n")


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
