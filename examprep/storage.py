"""
Filesystem Storage
==================
Reads exam Markdown sources and writes JSON artifacts.

Directory Layout (directory mode):
    <source>/
    ├── exam-1.md
    └── exam-2.md
    <destination>/
    ├── exam-1.json        # {examTitle, questions}
    ├── exam-2.json
    └── manifest.json      # [{file, title, questionCount}]

JSON is written with a fixed layout and a trailing newline so that
re-running on unchanged input produces byte-identical files.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if absent. Returns it as a Path."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def list_exam_files(source_dir: str | Path, extension: str = ".md") -> list[Path]:
    """
    List exam sources directly inside ``source_dir``, sorted by name.

    Raises:
        FileNotFoundError: If the directory does not exist.
    """
    directory = Path(source_dir)
    if not directory.is_dir():
        raise FileNotFoundError(f"Source directory not found: {directory}")
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.name.endswith(extension)
    )


def read_exam_file(path: str | Path) -> str:
    """Read one exam source as UTF-8 text. A leading byte-order mark is dropped."""
    return Path(path).read_text(encoding="utf-8-sig")


def output_name_for(source: str | Path, extension: str = ".json") -> str:
    """``aws-practice-1.md`` -> ``aws-practice-1.json``"""
    return Path(source).with_suffix(extension).name


def dumps(data: Any) -> str:
    """Serialize to the canonical on-disk JSON layout."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json(data: Any, path: str | Path) -> Path:
    """Write ``data`` as JSON, creating the parent directory if needed."""
    target = Path(path)
    ensure_dir(target.parent)
    target.write_text(dumps(data), encoding="utf-8")
    logger.info(f"Saved JSON: {target}")
    return target


def read_json(path: str | Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)
