from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np

from ..exceptions import IndexLoadError
from ..models import SearchResult
from .files import read_json, write_json


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in ``[-1, 1]``; 0 for empty, mismatched or zero-norm input."""

    if len(a) == 0 or len(a) != len(b):
        return 0.0

    left = np.asarray(a, dtype=np.float64)
    right = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(left) * np.linalg.norm(right))
    if norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / norm)


class VectorIndex:
    """Brute-force cosine index over dense document embeddings.

    ``doc_ids`` and ``vectors`` are parallel lists. A dimension of 0 means no
    vector has been added yet; the first vector fixes it.
    """

    def __init__(self, dimension: int = 0) -> None:
        self.dimension = dimension
        self.doc_ids: List[str] = []
        self.vectors: List[List[float]] = []
        self._positions: Dict[str, int] = {}
        self._matrix: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.doc_ids)

    def is_empty(self) -> bool:
        return not self.doc_ids

    def add(self, doc_id: str, vector: Sequence[float]) -> None:
        vector_dim = len(vector)
        if vector_dim == 0:
            raise ValueError("Cannot add an empty embedding")
        if self.dimension == 0:
            self.dimension = vector_dim
        elif vector_dim != self.dimension:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {vector_dim}"
            )
        self._positions.setdefault(doc_id, len(self.doc_ids))
        self.doc_ids.append(doc_id)
        self.vectors.append([float(value) for value in vector])
        self._matrix = None

    def _reindex(self) -> None:
        self._positions = {}
        for position, doc_id in enumerate(self.doc_ids):
            self._positions.setdefault(doc_id, position)
        self._matrix = None

    def contains(self, doc_id: str) -> bool:
        return doc_id in self._positions

    def get_vector(self, doc_id: str) -> Optional[List[float]]:
        position = self._positions.get(doc_id)
        if position is None:
            return None
        return self.vectors[position]

    def remove(self, doc_id: str) -> None:
        self.remove_batch([doc_id])

    def remove_batch(self, doc_ids: Iterable[str]) -> None:
        """Drop every listed id; ids not in the index are ignored."""

        doomed = set(doc_ids)
        if not doomed:
            return
        kept = [
            (doc_id, vector)
            for doc_id, vector in zip(self.doc_ids, self.vectors)
            if doc_id not in doomed
        ]
        self.doc_ids = [doc_id for doc_id, _ in kept]
        self.vectors = [vector for _, vector in kept]
        self._reindex()

    def _ensure_matrix(self) -> np.ndarray:
        if self._matrix is None:
            self._matrix = np.asarray(self.vectors, dtype=np.float64).reshape(
                len(self.vectors), self.dimension
            )
        return self._matrix

    def search(self, query_vector: Sequence[float], top_k: int = 10) -> List[SearchResult]:
        """Return stored vectors with positive cosine similarity, best first."""

        if not self.doc_ids or len(query_vector) == 0 or top_k <= 0:
            return []
        if len(query_vector) != self.dimension:
            return []

        query = np.asarray(query_vector, dtype=np.float64)
        query_norm = float(np.linalg.norm(query))
        if query_norm == 0.0:
            return []

        matrix = self._ensure_matrix()
        norms = np.linalg.norm(matrix, axis=1) * query_norm
        dots = matrix @ query
        scores = np.zeros(len(self.doc_ids), dtype=np.float64)
        np.divide(dots, norms, out=scores, where=norms > 0)

        order = np.argsort(-scores, kind="stable")
        results: List[SearchResult] = []
        for idx in order:
            score = float(scores[idx])
            if score <= 0.0:
                break
            results.append(SearchResult(self.doc_ids[idx], score))
            if len(results) >= top_k:
                break
        return results

    def to_dict(self) -> Dict[str, Any]:
        return {"doc_ids": self.doc_ids, "vectors": self.vectors, "dimension": self.dimension}

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "VectorIndex":
        if not isinstance(payload, dict):
            raise IndexLoadError("Vector index payload must be a JSON object")
        try:
            doc_ids = [str(doc_id) for doc_id in payload["doc_ids"]]
            vectors = [[float(value) for value in vector] for vector in payload["vectors"]]
            dimension = int(payload.get("dimension", 0))
        except (KeyError, TypeError, ValueError) as exc:
            raise IndexLoadError(f"Malformed vector index: {exc}") from exc

        if len(doc_ids) != len(vectors):
            raise IndexLoadError(
                f"Vector index has {len(doc_ids)} ids but {len(vectors)} vectors"
            )
        if dimension == 0 and vectors:
            dimension = len(vectors[0])
        if any(len(vector) != dimension for vector in vectors):
            raise IndexLoadError(f"Vector index contains vectors not of dimension {dimension}")

        index = cls(dimension)
        index.doc_ids = doc_ids
        index.vectors = vectors
        index._reindex()
        return index

    def save(self, path: Path | str) -> None:
        write_json(path, self.to_dict())

    @classmethod
    def load(cls, path: Path | str, *, missing_ok: bool = False) -> "VectorIndex":
        target = Path(path)
        if missing_ok and not target.exists():
            return cls()
        return cls.from_dict(read_json(target))


__all__ = ["VectorIndex", "cosine_similarity"]
