from .app import AppCommand, QuizApp, parse_command, run_app
from .render import available_actions, render_session, render_session_list

__all__ = [
    "AppCommand",
    "QuizApp",
    "parse_command",
    "run_app",
    "available_actions",
    "render_session",
    "render_session_list",
]
