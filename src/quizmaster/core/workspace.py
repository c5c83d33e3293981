"""Data home for quizmaster: config, logs and the session record."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

__all__ = [
    "DEFAULT_WORKSPACE",
    "WORKSPACE_ENV",
    "WorkspaceError",
    "WorkspaceLayout",
    "ensure_workspace",
]


WORKSPACE_ENV = "QUIZMASTER_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".quizmaster-data"

# Logical name -> directory under the data home.
_LAYOUT = MappingProxyType(
    {
        "config": "config",
        "logs": "logs",
        "storage": "storage",
    }
)


class WorkspaceError(RuntimeError):
    """Raised when the data home cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Resolved data home; ``created`` flags what this call had to create."""

    home: Path
    directories: Mapping[str, Path]
    created: Mapping[str, bool]

    def path_for(self, key: str) -> Path:
        if key not in self.directories:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.directories[key]

    def items(self) -> tuple[tuple[str, Path], ...]:
        return tuple(self.directories.items())


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the data home layout, creating it unless ``create`` is false.

    Precedence is ``path``, then ``$QUIZMASTER_DATA_HOME``, then
    ``~/.quizmaster-data``. Only the default home may fall back to a
    directory under the system temp dir when it cannot be created.
    """

    requested, explicit = _requested_home(
        os.environ if env is None else env, path
    )
    failure: PermissionError | None = None
    for base in _candidates(requested, explicit=explicit, create=create):
        try:
            return _layout_at(base, create=create)
        except PermissionError as exc:
            failure = exc
    raise WorkspaceError(
        f"Unable to prepare workspace at {requested}"
    ) from failure


def _requested_home(
    env: Mapping[str, str], override: Path | None
) -> tuple[Path, bool]:
    from_env = (env.get(WORKSPACE_ENV) or "").strip()
    if override is not None:
        chosen, explicit = override, True
    elif from_env:
        chosen, explicit = Path(from_env), True
    else:
        chosen, explicit = DEFAULT_WORKSPACE, False
    chosen = chosen.expanduser()
    try:
        return chosen.resolve(), explicit
    except FileNotFoundError:
        return chosen.absolute(), explicit


def _candidates(
    requested: Path, *, explicit: bool, create: bool
) -> Iterator[Path]:
    yield requested
    if create and not explicit:
        fallback = _fallback_base()
        if fallback != requested:
            yield fallback


def _fallback_base() -> Path:
    return Path(tempfile.gettempdir()) / "quizmaster-data"


def _layout_at(base: Path, *, create: bool) -> WorkspaceLayout:
    if base.exists() and not base.is_dir():
        raise WorkspaceError(
            f"Configured workspace exists and is not a directory: {base}"
        )
    directories = {name: base / rel for name, rel in _LAYOUT.items()}
    if create:
        created = {"home": _ensure_dir(base)}
        created.update(
            (name, _ensure_dir(target))
            for name, target in directories.items()
        )
    else:
        for name, target in directories.items():
            if target.exists() and not target.is_dir():
                raise WorkspaceError(
                    f"Expected workspace directory for '{name}' but found "
                    f"a file: {target}"
                )
        created = dict.fromkeys(["home", *directories], False)
    return WorkspaceLayout(
        home=base,
        directories=MappingProxyType(directories),
        created=MappingProxyType(created),
    )


def _ensure_dir(path: Path) -> bool:
    """Create ``path`` (mode 0o700); ``True`` when it did not exist."""
    if path.exists():
        if not path.is_dir():
            raise WorkspaceError(
                f"Expected directory but found a non-directory entry: {path}"
            )
        fresh = False
    else:
        path.mkdir(parents=True, exist_ok=True)
        fresh = True
    try:
        path.chmod(0o700)
    except (PermissionError, NotImplementedError):
        pass
    return fresh
