"""Core shared helpers: workspace, configuration, logging and I/O."""

from __future__ import annotations

from .ai import load_client
from .config import (
    ConfigError,
    QuizMasterConfig,
    load_config,
    resolve_config_path,
    write_template,
)
from .files import parse_extensions, read_document
from .logging import JsonLogFormatter, configure_logger
from .workspace import (
    WORKSPACE_ENV,
    WorkspaceError,
    WorkspaceLayout,
    ensure_workspace,
)

__all__ = [
    "load_client",
    "ConfigError",
    "QuizMasterConfig",
    "load_config",
    "resolve_config_path",
    "write_template",
    "parse_extensions",
    "read_document",
    "configure_logger",
    "JsonLogFormatter",
    "ensure_workspace",
    "WorkspaceLayout",
    "WorkspaceError",
    "WORKSPACE_ENV",
]
