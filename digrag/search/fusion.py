from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..models import SearchResult

DEFAULT_RRF_K = 60


class ReciprocalRankFusion:
    """Merge ranked result lists with Reciprocal Rank Fusion.

    A result at 1-based ``rank`` in a list contributes ``weight / (k + rank)``.
    Contributions are summed per document id across lists. Raw scores are
    ignored; only positions matter.
    """

    def __init__(self, k: int = DEFAULT_RRF_K) -> None:
        if k < 0:
            raise ValueError("RRF k must be non-negative")
        self.k = k

    def fuse(
        self,
        *ranked_lists: Sequence[SearchResult],
        weights: Optional[Sequence[float]] = None,
    ) -> List[SearchResult]:
        """Return every distinct id, best fused score first.

        Ties keep first-seen order. ``title`` and ``snippet`` come from the
        first occurrence that carries them.
        """

        if weights is not None and len(weights) != len(ranked_lists):
            raise ValueError("weights must match the number of ranked lists")

        fused: Dict[str, SearchResult] = {}
        for list_idx, results in enumerate(ranked_lists):
            weight = 1.0 if weights is None else weights[list_idx]
            for rank, result in enumerate(results, start=1):
                contribution = weight / (self.k + rank)
                entry = fused.get(result.doc_id)
                if entry is None:
                    fused[result.doc_id] = SearchResult(
                        result.doc_id, contribution, result.title, result.snippet
                    )
                    continue
                entry.score += contribution
                if entry.title is None:
                    entry.title = result.title
                if entry.snippet is None:
                    entry.snippet = result.snippet

        return sorted(fused.values(), key=lambda item: item.score, reverse=True)


__all__ = ["DEFAULT_RRF_K", "ReciprocalRankFusion"]
