"""TOML configuration for quizmaster.

The config file is optional: a missing file yields the defaults below. Values
present in the file are merged over the defaults and validated; unknown keys
are rejected so typos surface early.
"""

from __future__ import annotations

import copy
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional

from ..models import QuizType
from . import workspace

__all__ = [
    "CONFIG_PATH_ENV",
    "ConfigError",
    "OpenAIConfig",
    "QuizDefaultsConfig",
    "StorageConfig",
    "LoggingConfig",
    "QuizMasterConfig",
    "config_template",
    "default_tree",
    "load_config",
    "resolve_config_path",
    "write_template",
]


CONFIG_PATH_ENV = "QUIZMASTER_CONFIG"
CONFIG_FILENAME = "quizmaster.toml"


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class OpenAIConfig:
    generation_model: str
    grading_model: str
    temperature: float
    max_output_tokens: int
    request_timeout_seconds: int
    api_base: Optional[str]


@dataclass(frozen=True)
class QuizDefaultsConfig:
    default_quiz_type: QuizType
    default_num_questions: int
    max_questions: int


@dataclass(frozen=True)
class StorageConfig:
    key: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str
    verbose: bool


@dataclass(frozen=True)
class QuizMasterConfig:
    data_home_override: Optional[Path]
    openai: OpenAIConfig
    quiz: QuizDefaultsConfig
    storage: StorageConfig
    logging: LoggingConfig


def _merge_dict(
    base: MutableMapping[str, Any],
    override: Mapping[str, Any],
    *,
    path: str = "",
) -> None:
    for key, value in override.items():
        dotted = f"{path}{key}"
        if key not in base:
            raise ConfigError(f"Unknown configuration key '{dotted}'.")
        base_value = base[key]
        if isinstance(base_value, MutableMapping):
            if not isinstance(value, Mapping):
                raise ConfigError(
                    "Expected table for '{0}', found {1}.".format(
                        dotted,
                        type(value).__name__,
                    )
                )
            _merge_dict(base_value, value, path=f"{dotted}.")
        else:
            base[key] = value


def _require_positive_int(value: Any, *, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigError(f"'{field}' must be a positive integer.")
    return value


def _require_bool(value: Any, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"'{field}' must be a boolean.")
    return value


def _require_float_range(
    value: Any, *, field: str, min_value: float, max_value: float
) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"'{field}' must be a number.")
    number = float(value)
    if not (min_value <= number <= max_value):
        raise ConfigError(
            f"'{field}' must be between {min_value} and {max_value}."
        )
    return number


def _require_string(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string.")
    return value.strip()


def _coerce_optional_string(value: Any, *, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{field}' must be a non-empty string when set.")
    return value.strip()


def _build_openai(section: Mapping[str, Any]) -> OpenAIConfig:
    return OpenAIConfig(
        generation_model=_require_string(
            section.get("generation_model"), field="openai.generation_model"
        ),
        grading_model=_require_string(
            section.get("grading_model"), field="openai.grading_model"
        ),
        temperature=_require_float_range(
            section.get("temperature"),
            field="openai.temperature",
            min_value=0.0,
            max_value=2.0,
        ),
        max_output_tokens=_require_positive_int(
            section.get("max_output_tokens"), field="openai.max_output_tokens"
        ),
        request_timeout_seconds=_require_positive_int(
            section.get("request_timeout_seconds"),
            field="openai.request_timeout_seconds",
        ),
        api_base=_coerce_optional_string(
            section.get("api_base"), field="openai.api_base"
        ),
    )


def _build_quiz(section: Mapping[str, Any]) -> QuizDefaultsConfig:
    raw_type = _require_string(
        section.get("default_quiz_type"), field="quiz.default_quiz_type"
    ).upper()
    try:
        quiz_type = QuizType[raw_type]
    except KeyError as exc:
        raise ConfigError(
            "quiz.default_quiz_type must be one of {0}.".format(
                ", ".join(QuizType.__members__)
            )
        ) from exc
    default_num = _require_positive_int(
        section.get("default_num_questions"),
        field="quiz.default_num_questions",
    )
    max_questions = _require_positive_int(
        section.get("max_questions"), field="quiz.max_questions"
    )
    if default_num > max_questions:
        raise ConfigError(
            "quiz.default_num_questions must not exceed quiz.max_questions."
        )
    return QuizDefaultsConfig(
        default_quiz_type=quiz_type,
        default_num_questions=default_num,
        max_questions=max_questions,
    )


def _build_storage(section: Mapping[str, Any]) -> StorageConfig:
    key = _require_string(section.get("key"), field="storage.key")
    if any(sep in key for sep in ("/", "\\")) or key.startswith("."):
        raise ConfigError("storage.key must be a plain name, not a path.")
    return StorageConfig(key=key)


def _build_logging(section: Mapping[str, Any]) -> LoggingConfig:
    level = _require_string(
        section.get("level"), field="logging.level"
    ).upper()
    allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if level not in allowed:
        raise ConfigError(
            "logging.level must be one of "
            "DEBUG, INFO, WARNING, ERROR, CRITICAL."
        )
    verbose = _require_bool(section.get("verbose"), field="logging.verbose")
    return LoggingConfig(level=level, verbose=verbose)


def _build_config(tree: Mapping[str, Any]) -> QuizMasterConfig:
    raw_home = _coerce_optional_string(
        tree["paths"].get("data_home"), field="paths.data_home"
    )
    return QuizMasterConfig(
        data_home_override=(
            Path(raw_home).expanduser().resolve() if raw_home else None
        ),
        openai=_build_openai(tree["openai"]),
        quiz=_build_quiz(tree["quiz"]),
        storage=_build_storage(tree["storage"]),
        logging=_build_logging(tree["logging"]),
    )


def _load_toml(path: Path) -> Mapping[str, Any]:
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Failed to parse config TOML: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Unable to read config file: {path}") from exc


def resolve_config_path(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> Path:
    """Return the config path: explicit, then ``$QUIZMASTER_CONFIG``, then
    ``<data_home>/config/quizmaster.toml``."""

    env_map = os.environ if env is None else env
    if explicit_path is not None:
        return explicit_path.expanduser().resolve()
    env_override = (env_map.get(CONFIG_PATH_ENV) or "").strip()
    if env_override:
        return Path(env_override).expanduser().resolve()
    layout = workspace.ensure_workspace(env=env_map, create=False)
    return layout.path_for("config") / CONFIG_FILENAME


def load_config(
    *,
    explicit_path: Optional[Path] = None,
    env: Mapping[str, str] | None = None,
) -> QuizMasterConfig:
    """Load the TOML config, applying defaults and validation."""

    path = resolve_config_path(explicit_path=explicit_path, env=env)
    tree = default_tree()
    if path.exists():
        if path.is_dir():
            raise ConfigError(
                f"Configuration path exists but is a directory: {path}"
            )
        _merge_dict(tree, _load_toml(path))
    elif explicit_path is not None:
        raise ConfigError(f"Config file not found: {path}")
    return _build_config(tree)


def default_tree() -> Dict[str, Any]:
    """Return a copy of the default configuration tree."""

    return copy.deepcopy(_DEFAULTS)


def config_template() -> str:
    """Return the TOML template recommended for new installs."""

    return _CONFIG_TEMPLATE.strip() + "\n"


def write_template(
    path: Path, *, overwrite: bool = False, mode: int = 0o600
) -> Path:
    """Write the default template to ``path``."""

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists() and not overwrite:
        raise ConfigError(f"Config already exists: {path}")
    with path.open("w", encoding="utf-8") as fh:
        fh.write(config_template())
    try:
        path.chmod(mode)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    return path


# TOML has no null: ``paths.data_home`` stays None unless the file sets it.
_DEFAULTS: Dict[str, Any] = {
    "paths": {
        "data_home": None,
    },
    "openai": {
        "generation_model": "gpt-4o-mini",
        "grading_model": "gpt-4o",
        "temperature": 0.2,
        "max_output_tokens": 4000,
        "request_timeout_seconds": 120,
        "api_base": None,
    },
    "quiz": {
        "default_quiz_type": "MIXED",
        "default_num_questions": 5,
        "max_questions": 20,
    },
    "storage": {
        "key": "quizmaster_ai_sessions",
    },
    "logging": {
        "level": "INFO",
        "verbose": False,
    },
}


_CONFIG_TEMPLATE = """
# QuizMaster configuration

[paths]
# Set to override the default data directory (~/.quizmaster-data)
# data_home = "~/my-quiz-data"

[openai]
# Model used to write quizzes from a document
generation_model = "gpt-4o-mini"
# Model used to grade answers and write feedback
grading_model = "gpt-4o"
# Sampling temperature (0.0-2.0)
temperature = 0.2
max_output_tokens = 4000
request_timeout_seconds = 120
# Optional API base override
# api_base = "https://api.openai.com/v1"

[quiz]
# SINGLE, MULTIPLE or MIXED
default_quiz_type = "MIXED"
default_num_questions = 5
# Upper bound accepted by the configuration form
max_questions = 20

[storage]
# Name of the durable record holding every session
key = "quizmaster_ai_sessions"

[logging]
level = "INFO"
verbose = false
"""
