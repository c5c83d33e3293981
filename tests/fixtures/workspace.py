"""Document files for upload tests."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass
class DocumentFolder:
    """A tmp directory holding documents to upload."""

    root: Path

    def document(self, name: str, content: Union[str, bytes]) -> Path:
        """Write ``name`` (text as UTF-8, bytes verbatim) and return it."""
        path = self.root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path
