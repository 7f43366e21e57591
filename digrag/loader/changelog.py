"""Parser for the plain-text changelog memo format.

An entry starts with a header line::

    * Title 2025-01-15 10:00:00 [memo]:[worklog]:

and every following line up to the next header is its body.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..exceptions import DocumentParseError
from ..models import Document

logger = logging.getLogger(__name__)

ENTRY_RE = re.compile(r"^\* (.+?) (\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\s*(.*)$")
TAG_RE = re.compile(r"\[([^\]]+)\]:")
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ChangelogLoader:
    def load_from_file(self, path: Path | str) -> List[Document]:
        target = Path(path)
        try:
            content = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise DocumentParseError(f"Failed to read changelog {target}: {exc}") from exc
        return self.load_from_string(content)

    def load_from_string(self, content: str) -> List[Document]:
        documents: List[Document] = []
        header: Optional[re.Match[str]] = None
        body: List[str] = []

        for line in content.splitlines():
            match = ENTRY_RE.match(line)
            if match:
                self._flush(header, body, documents)
                header, body = match, []
            elif header is not None:
                body.append(line)

        self._flush(header, body, documents)
        return documents

    def _flush(
        self, header: Optional[re.Match[str]], body: List[str], documents: List[Document]
    ) -> None:
        if header is None:
            return

        title, date_str, tag_str = header.group(1), header.group(2), header.group(3)
        try:
            date = datetime.strptime(date_str, DATE_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            logger.warning("Skipping entry %r with invalid date %s", title, date_str)
            return

        tags = TAG_RE.findall(tag_str)
        text = "\n".join(body).strip()
        documents.append(Document.with_content_id(title, date, tags, text))


__all__ = ["ChangelogLoader"]
