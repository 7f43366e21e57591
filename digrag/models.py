"""Core data structures shared by loaders, indices and the searcher."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

CONTENT_HASH_LENGTH = 16
CATEGORY_SEPARATOR = " / "


def compute_content_hash(title: str, text: str) -> str:
    """Return the truncated SHA-256 digest identifying ``title`` and ``text``.

    The NUL separator keeps ``("ab", "c")`` and ``("a", "bc")`` apart. Tags
    and dates do not take part in the hash.
    """

    digest = hashlib.sha256()
    digest.update(title.encode("utf-8"))
    digest.update(b"\0")
    digest.update(text.encode("utf-8"))
    return digest.hexdigest()[:CONTENT_HASH_LENGTH]


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Serialize ``value`` as an RFC 3339 UTC timestamp with a ``Z`` suffix."""

    return _utc(value).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp; naive values are taken to be UTC."""

    return _utc(datetime.fromisoformat(value))


def _require_str(payload: Dict[str, Any], key: str, default: Optional[str] = None) -> str:
    value = payload.get(key, default)
    if not isinstance(value, str):
        raise TypeError(f"Field {key!r} must be a string, got {type(value).__name__}")
    return value


@dataclass(slots=True)
class DocumentMetadata:
    title: str
    date: datetime
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"title": self.title, "date": format_timestamp(self.date), "tags": list(self.tags)}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "DocumentMetadata":
        return cls(
            title=_require_str(payload, "title"),
            date=parse_timestamp(_require_str(payload, "date")),
            tags=[str(tag) for tag in payload.get("tags") or []],
        )


@dataclass(slots=True)
class Document:
    """A dated, tagged memo entry."""

    id: str
    metadata: DocumentMetadata
    text: str

    @classmethod
    def new(cls, title: str, date: datetime, tags: List[str], text: str) -> "Document":
        """Create a document with a random UUID4 id (legacy id mode)."""

        return cls(
            id=str(uuid.uuid4()),
            metadata=DocumentMetadata(title=title, date=_utc(date), tags=list(tags)),
            text=text,
        )

    @classmethod
    def with_content_id(cls, title: str, date: datetime, tags: List[str], text: str) -> "Document":
        """Create a document whose id is derived from its title and body."""

        return cls(
            id=compute_content_hash(title, text),
            metadata=DocumentMetadata(title=title, date=_utc(date), tags=list(tags)),
            text=text,
        )

    @property
    def title(self) -> str:
        return self.metadata.title

    @property
    def date(self) -> datetime:
        return self.metadata.date

    @property
    def tags(self) -> List[str]:
        return self.metadata.tags

    def content_hash(self) -> str:
        return compute_content_hash(self.metadata.title, self.text)

    def has_tag(self, tag: str) -> bool:
        return tag in self.metadata.tags

    def category(self) -> str:
        """Return the part of the title before the first ``" / "``."""

        return self.metadata.title.split(CATEGORY_SEPARATOR, 1)[0]

    def subcategory(self) -> Optional[str]:
        parts = self.metadata.title.split(CATEGORY_SEPARATOR, 1)
        if len(parts) < 2:
            return None
        return parts[1]

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "metadata": self.metadata.to_dict(), "text": self.text}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Document":
        return cls(
            id=str(payload["id"]),
            metadata=DocumentMetadata.from_dict(payload["metadata"]),
            text=_require_str(payload, "text", ""),
        )


@dataclass(slots=True)
class SearchResult:
    """A ranked hit. ``score`` is BM25, cosine or RRF depending on the mode."""

    doc_id: str
    score: float
    title: Optional[str] = None
    snippet: Optional[str] = None


class SearchMode(str, Enum):
    BM25 = "bm25"
    SEMANTIC = "semantic"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: "SearchMode | str") -> "SearchMode":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for mode in cls:
            if mode.value == normalized:
                return mode
        choices = ", ".join(mode.value for mode in cls)
        raise ValueError(f"Unknown search mode '{value}' (expected one of: {choices})")


__all__ = [
    "Document",
    "DocumentMetadata",
    "SearchMode",
    "SearchResult",
    "compute_content_hash",
    "format_timestamp",
    "parse_timestamp",
]
