from __future__ import annotations

from typing import List, Protocol, Sequence


class Embedder(Protocol):
    """Pluggable text embedding backend."""

    @property
    def model_name(self) -> str:
        ...

    def embed(self, text: str) -> List[float]:
        """Return the vector for a single text."""

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Return one vector per input text, in input order."""


__all__ = ["Embedder"]
