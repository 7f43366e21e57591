from __future__ import annotations

import io
import json
from pathlib import Path
from typing import Iterable, List, TextIO

from ..exceptions import DocumentParseError
from ..models import Document


class JsonlLoader:
    """Read serialized documents, one JSON object per line.

    Blank lines and lines starting with ``#`` are ignored.
    """

    def load_from_lines(self, lines: Iterable[str]) -> List[Document]:
        documents: List[Document] = []
        for line_number, line in enumerate(lines, start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            try:
                documents.append(Document.from_dict(json.loads(stripped)))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                raise DocumentParseError(
                    f"Failed to parse JSON at line {line_number}: {exc}"
                ) from exc
        return documents

    def load_from_reader(self, reader: TextIO) -> List[Document]:
        return self.load_from_lines(reader)

    def load_from_string(self, content: str) -> List[Document]:
        return self.load_from_lines(io.StringIO(content))

    def load_from_file(self, path: Path | str) -> List[Document]:
        target = Path(path)
        try:
            with target.open("r", encoding="utf-8") as handle:
                return self.load_from_reader(handle)
        except OSError as exc:
            raise DocumentParseError(f"Failed to read {target}: {exc}") from exc


__all__ = ["JsonlLoader"]
