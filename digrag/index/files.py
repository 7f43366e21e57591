"""Index directory layout and safe writes for persisted artifacts."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from ..exceptions import IndexLoadError

BM25_INDEX_FILE = "bm25_index.json"
VECTOR_INDEX_FILE = "faiss_index.json"
DOCSTORE_FILE = "docstore.json"
METADATA_FILE = "metadata.json"


def atomic_write_bytes(path: Path | str, data: bytes) -> None:
    """Atomically write ``data`` to ``path`` using a temporary file."""

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(prefix=target.name, dir=target.parent)
    try:
        with os.fdopen(fd, "wb") as tmp_file:
            tmp_file.write(data)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, target)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def atomic_write_text(path: Path | str, text: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, text.encode(encoding))


def write_json(path: Path | str, payload: Any) -> None:
    atomic_write_text(path, json.dumps(payload, ensure_ascii=False, indent=2))


def read_json(path: Path | str) -> Any:
    """Read a JSON artifact, wrapping IO and decode failures in :class:`IndexLoadError`."""

    target = Path(path)
    try:
        return json.loads(target.read_text(encoding="utf-8"))
    except OSError as exc:
        raise IndexLoadError(f"Failed to read {target}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise IndexLoadError(f"Malformed JSON in {target}: {exc}") from exc


__all__ = [
    "BM25_INDEX_FILE",
    "DOCSTORE_FILE",
    "METADATA_FILE",
    "VECTOR_INDEX_FILE",
    "atomic_write_bytes",
    "atomic_write_text",
    "read_json",
    "write_json",
]
