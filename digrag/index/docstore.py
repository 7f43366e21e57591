from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

from ..exceptions import IndexLoadError
from ..models import Document
from .files import read_json, write_json


class Docstore:
    """Id-keyed document storage with tag and recency lookups."""

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._documents

    def __iter__(self) -> Iterator[Document]:
        return iter(self._documents.values())

    def is_empty(self) -> bool:
        return not self._documents

    def add(self, document: Document) -> None:
        """Insert ``document``, replacing any stored document with the same id."""

        self._documents[document.id] = document

    def get(self, doc_id: str) -> Optional[Document]:
        return self._documents.get(doc_id)

    def contains(self, doc_id: str) -> bool:
        return doc_id in self._documents

    def doc_ids(self) -> List[str]:
        return list(self._documents)

    def remove(self, doc_id: str) -> Optional[Document]:
        return self._documents.pop(doc_id, None)

    def remove_batch(self, doc_ids: Iterable[str]) -> int:
        removed = 0
        for doc_id in doc_ids:
            if self._documents.pop(doc_id, None) is not None:
                removed += 1
        return removed

    def get_by_tag(self, tag: str) -> List[Document]:
        return [document for document in self._documents.values() if document.has_tag(tag)]

    def get_all_tags(self) -> List[str]:
        """Return every distinct tag, sorted."""

        return sorted({tag for document in self._documents.values() for tag in document.tags})

    def tag_counts(self) -> Dict[str, int]:
        """Return the number of documents carrying each tag, keyed in sorted order."""

        counts: Counter[str] = Counter()
        for document in self._documents.values():
            counts.update(set(document.tags))
        return dict(sorted(counts.items()))

    def get_recent(self, limit: int) -> List[Document]:
        """Return up to ``limit`` documents, newest first."""

        if limit <= 0:
            return []
        ordered = sorted(self._documents.values(), key=lambda document: document.date, reverse=True)
        return ordered[:limit]

    def to_dict(self) -> Dict[str, Any]:
        documents = {doc_id: document.to_dict() for doc_id, document in self._documents.items()}
        return {"documents": documents}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Docstore":
        if not isinstance(payload, dict) or not isinstance(payload.get("documents"), dict):
            raise IndexLoadError("Docstore payload must contain a 'documents' object")

        store = cls()
        for doc_id, raw in payload["documents"].items():
            try:
                document = Document.from_dict(raw)
            except (KeyError, TypeError, ValueError) as exc:
                raise IndexLoadError(f"Malformed docstore entry {doc_id!r}: {exc}") from exc
            store._documents[str(doc_id)] = document
        return store

    def save(self, path: Path | str) -> None:
        write_json(path, self.to_dict())

    @classmethod
    def load(cls, path: Path | str, *, missing_ok: bool = False) -> "Docstore":
        target = Path(path)
        if missing_ok and not target.exists():
            return cls()
        return cls.from_dict(read_json(target))


__all__ = ["Docstore"]
