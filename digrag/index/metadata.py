from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..exceptions import IndexLoadError
from ..models import format_timestamp
from .files import read_json, write_json

CURRENT_SCHEMA_VERSION = "2.0"
MIN_INCREMENTAL_SCHEMA = 2.0


@dataclass
class IndexMetadata:
    """Build bookkeeping stored next to the index artifacts."""

    doc_count: int
    created_at: str
    embedding_model: Optional[str] = None
    schema_version: str = CURRENT_SCHEMA_VERSION
    doc_hashes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def new(cls, doc_count: int, embedding_model: Optional[str] = None) -> "IndexMetadata":
        return cls(
            doc_count=doc_count,
            created_at=format_timestamp(datetime.now(timezone.utc)),
            embedding_model=embedding_model,
        )

    def needs_full_rebuild(self) -> bool:
        """True when the schema predates content-hash bookkeeping."""

        if not self.schema_version:
            return True
        try:
            version = float(self.schema_version)
        except ValueError:
            version = 0.0
        if not math.isfinite(version):
            version = 0.0
        return version < MIN_INCREMENTAL_SCHEMA

    def update_doc_hash(self, doc_id: str, content_hash: str) -> None:
        self.doc_hashes[doc_id] = content_hash

    def remove_doc_hash(self, doc_id: str) -> None:
        self.doc_hashes.pop(doc_id, None)

    def get_doc_hash(self, doc_id: str) -> Optional[str]:
        return self.doc_hashes.get(doc_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doc_count": self.doc_count,
            "created_at": self.created_at,
            "embedding_model": self.embedding_model,
            "schema_version": self.schema_version,
            "doc_hashes": self.doc_hashes,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IndexMetadata":
        if not isinstance(payload, dict):
            raise IndexLoadError("Index metadata payload must be a JSON object")
        try:
            return cls(
                doc_count=int(payload["doc_count"]),
                created_at=str(payload["created_at"]),
                embedding_model=payload.get("embedding_model"),
                schema_version=str(payload.get("schema_version") or ""),
                doc_hashes={
                    str(doc_id): str(digest)
                    for doc_id, digest in (payload.get("doc_hashes") or {}).items()
                },
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise IndexLoadError(f"Malformed index metadata: {exc}") from exc

    def save(self, path: Path | str) -> None:
        write_json(path, self.to_dict())

    @classmethod
    def load(cls, path: Path | str) -> "IndexMetadata":
        return cls.from_dict(read_json(path))


__all__ = ["CURRENT_SCHEMA_VERSION", "IndexMetadata"]
