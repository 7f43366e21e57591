from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping

from ..models import Document


@dataclass
class IncrementalDiff:
    """Classification of a new document set against the hashes of a previous build.

    Every new document lands in exactly one of ``added``, ``modified`` or
    ``unchanged``; ids only present in the previous build land in ``removed``.
    """

    added: List[Document] = field(default_factory=list)
    modified: List[Document] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)

    @classmethod
    def compute(
        cls, new_documents: Iterable[Document], existing_hashes: Mapping[str, str]
    ) -> "IncrementalDiff":
        diff = cls()
        seen = set()
        for document in new_documents:
            seen.add(document.id)
            previous = existing_hashes.get(document.id)
            if previous is None:
                diff.added.append(document)
            elif previous == document.content_hash():
                diff.unchanged.append(document.id)
            else:
                diff.modified.append(document)

        diff.removed = [doc_id for doc_id in existing_hashes if doc_id not in seen]
        return diff

    def embeddings_needed(self) -> int:
        return len(self.added) + len(self.modified)

    def needs_embedding(self) -> List[Document]:
        return [*self.added, *self.modified]

    def has_changes(self) -> bool:
        return bool(self.added or self.modified or self.removed)

    def summary(self) -> str:
        return (
            f"added={len(self.added)} modified={len(self.modified)} "
            f"removed={len(self.removed)} unchanged={len(self.unchanged)}"
        )


__all__ = ["IncrementalDiff"]
