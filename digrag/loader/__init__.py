"""Document loaders for changelog and JSONL sources."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from ..exceptions import DocumentParseError
from ..models import Document
from .changelog import ChangelogLoader
from .jsonl import JsonlLoader

logger = logging.getLogger(__name__)

STDIN_MARKER = "-"
JSONL_SUFFIXES = {".jsonl", ".ndjson"}


def _iter_source_files(directory: Path) -> List[Path]:
    files = []
    for path in directory.rglob("*"):
        hidden = any(part.startswith(".") for part in path.relative_to(directory).parts)
        if path.is_file() and not hidden:
            files.append(path)
    return sorted(files)


def load_path(path: Path | str, *, stdin: Optional[TextIO] = None) -> List[Document]:
    """Load documents from one input: a file, a directory, or ``-`` for stdin JSONL."""

    if str(path) == STDIN_MARKER:
        return JsonlLoader().load_from_reader(stdin or sys.stdin)

    target = Path(path).expanduser()
    if target.is_dir():
        documents: List[Document] = []
        for source in _iter_source_files(target):
            documents.extend(load_path(source))
        return documents
    if not target.exists():
        raise DocumentParseError(f"Input not found: {target}")
    if target.suffix.lower() in JSONL_SUFFIXES:
        return JsonlLoader().load_from_file(target)
    return ChangelogLoader().load_from_file(target)


def load_documents(
    paths: Iterable[Path | str], *, stdin: Optional[TextIO] = None
) -> List[Document]:
    """Load and concatenate documents from every input, in order."""

    documents: List[Document] = []
    for path in paths:
        loaded = load_path(path, stdin=stdin)
        logger.info("Loaded %d documents from %s", len(loaded), path)
        documents.extend(loaded)
    return documents


__all__ = ["ChangelogLoader", "JsonlLoader", "load_documents", "load_path"]
