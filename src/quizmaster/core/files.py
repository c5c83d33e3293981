"""Document ingestion: the raw file-read step before a session exists."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence, Set

from ..errors import IngestionError

__all__ = [
    "DEFAULT_EXTENSIONS",
    "parse_extensions",
    "read_document",
]


DEFAULT_EXTENSIONS = frozenset({"txt", "md", "markdown"})


def parse_extensions(
    values: Optional[Sequence[str]],
    *,
    default: Optional[Iterable[str]] = None,
) -> Set[str]:
    """Normalize extension strings to a lowercase set without leading dots.

    Parameters
    ----------
    values:
        Raw extension inputs (with or without leading dots).
        ``None`` or an empty sequence returns the default set.
    default:
        Fallback extensions. Defaults to :data:`DEFAULT_EXTENSIONS`.
    """
    fallback = set(default or DEFAULT_EXTENSIONS)
    if not values:
        return fallback

    normalized: Set[str] = set()
    for item in values:
        if not isinstance(item, str):
            continue
        candidate = item.strip().lower().lstrip(".")
        if candidate:
            normalized.add(candidate)
    return normalized or fallback


def read_document(
    path: Path, *, extensions: Optional[Iterable[str]] = None
) -> str:
    """Read a text document as UTF-8, replacing undecodable bytes.

    Raises :class:`IngestionError` when the path is missing, is not a regular
    file, has a disallowed extension or cannot be read.
    """
    allowed = parse_extensions(list(extensions) if extensions else None)
    source = Path(path)
    if not source.exists():
        raise IngestionError(f"File not found: {source}")
    if not source.is_file():
        raise IngestionError(f"Not a regular file: {source}")
    suffix = source.suffix.lower().lstrip(".")
    if suffix not in allowed:
        raise IngestionError(
            "Unsupported file type '.{0}' (allowed: {1}).".format(
                suffix, ", ".join(sorted(allowed))
            )
        )
    try:
        with source.open("r", encoding="utf-8", errors="replace") as fh:
            return fh.read()
    except OSError as exc:
        raise IngestionError(f"Unable to read file: {source}") from exc
