"""
localscribe.io - JSON/text helpers with atomic writes.

Transcripts, subtitles and the model registry are written through a temp
file in the destination directory and renamed into place, so an interrupted
run never leaves a half-written file behind.
"""

from __future__ import annotations

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any


def _write_atomic(path: Path, write: Callable[[IO[str]], None]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        try:
            write(tmp)
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise
    tmp_path.replace(path)


def read_json(path: Path) -> Any:
    """Read a UTF-8 JSON file.

    Raises:
        FileNotFoundError: If file doesn't exist
        json.JSONDecodeError: If file contains invalid JSON
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Write data as pretty-printed UTF-8 JSON, atomically."""
    _write_atomic(path, lambda f: json.dump(data, f, indent=indent, ensure_ascii=False))


def write_text(path: Path, content: str) -> None:
    """Write a UTF-8 text file atomically."""
    _write_atomic(path, lambda f: f.write(content))
