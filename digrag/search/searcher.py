"""Query-time access to a built index directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..clients.base import ClientError
from ..embedding.base import Embedder
from ..index.bm25_index import BM25Index
from ..index.docstore import Docstore
from ..index.files import BM25_INDEX_FILE, DOCSTORE_FILE, VECTOR_INDEX_FILE
from ..index.vector_index import VectorIndex
from ..models import Document, SearchMode, SearchResult
from ..tokenizer import TokenizeFn
from .fusion import DEFAULT_RRF_K, ReciprocalRankFusion

logger = logging.getLogger(__name__)

DEFAULT_TAG_OVERFETCH = 3
HYBRID_CANDIDATE_FACTOR = 2


class Searcher:
    """Run BM25, semantic and hybrid queries against loaded indices.

    Semantic search degrades to an empty result list when there are no
    vectors, no embedder, or the embedder fails; hybrid search then ranks
    on BM25 alone.
    """

    def __init__(
        self,
        bm25: BM25Index,
        vectors: VectorIndex,
        docstore: Docstore,
        *,
        embedder: Optional[Embedder] = None,
        fusion: Optional[ReciprocalRankFusion] = None,
        tag_overfetch_factor: int = DEFAULT_TAG_OVERFETCH,
    ) -> None:
        if tag_overfetch_factor < 1:
            raise ValueError("tag_overfetch_factor must be at least 1")
        self.bm25 = bm25
        self.vectors = vectors
        self.docstore = docstore
        self.embedder = embedder
        self.fusion = fusion or ReciprocalRankFusion()
        self.tag_overfetch_factor = tag_overfetch_factor

    @classmethod
    def from_index_dir(
        cls,
        index_dir: Path | str,
        *,
        embedder: Optional[Embedder] = None,
        tokenizer: Optional[TokenizeFn] = None,
        rrf_k: int = DEFAULT_RRF_K,
        tag_overfetch_factor: int = DEFAULT_TAG_OVERFETCH,
    ) -> "Searcher":
        """Load the artifacts in ``index_dir``; missing files load as empty indices."""

        root = Path(index_dir)
        return cls(
            BM25Index.load(root / BM25_INDEX_FILE, tokenizer=tokenizer, missing_ok=True),
            VectorIndex.load(root / VECTOR_INDEX_FILE, missing_ok=True),
            Docstore.load(root / DOCSTORE_FILE, missing_ok=True),
            embedder=embedder,
            fusion=ReciprocalRankFusion(rrf_k),
            tag_overfetch_factor=tag_overfetch_factor,
        )

    def search(
        self,
        query: str,
        mode: SearchMode | str = SearchMode.BM25,
        top_k: int = 10,
        tag_filter: Optional[str] = None,
    ) -> List[SearchResult]:
        if top_k <= 0:
            return []
        mode = SearchMode.parse(mode)
        fetch_k = top_k * self.tag_overfetch_factor if tag_filter else top_k

        if mode is SearchMode.BM25:
            results = self.search_bm25(query, fetch_k)
        elif mode is SearchMode.SEMANTIC:
            results = self.search_semantic(query, fetch_k)
        elif mode is SearchMode.HYBRID:
            results = self.search_hybrid(query, fetch_k)
        else:
            raise ValueError(f"Unsupported search mode: {mode}")

        if tag_filter:
            results = self._filter_by_tag(results, tag_filter)
        return results[:top_k]

    def search_bm25(self, query: str, top_k: int) -> List[SearchResult]:
        return self.bm25.search(query, top_k)

    def search_semantic(self, query: str, top_k: int) -> List[SearchResult]:
        if self.vectors.is_empty():
            logger.warning("Semantic search requested but the vector index is empty")
            return []
        if self.embedder is None:
            logger.warning("Semantic search requested but no embedder is configured")
            return []
        try:
            query_vector = self.embedder.embed(query)
        except ClientError as exc:
            logger.error("Query embedding failed: %s", exc)
            return []
        return self.vectors.search(query_vector, top_k)

    def search_semantic_with_vector(
        self, query_vector: Sequence[float], top_k: int
    ) -> List[SearchResult]:
        return self.vectors.search(query_vector, top_k)

    def search_hybrid(self, query: str, top_k: int) -> List[SearchResult]:
        candidates = top_k * HYBRID_CANDIDATE_FACTOR
        lexical = self.search_bm25(query, candidates)
        semantic = self.search_semantic(query, candidates)
        return self.fusion.fuse(lexical, semantic)[:top_k]

    def _filter_by_tag(self, results: List[SearchResult], tag: str) -> List[SearchResult]:
        filtered = []
        for result in results:
            document = self.docstore.get(result.doc_id)
            if document is not None and document.has_tag(tag):
                filtered.append(result)
        return filtered

    def has_vector_index(self) -> bool:
        return not self.vectors.is_empty()

    def list_tags(self) -> List[str]:
        return self.docstore.get_all_tags()

    def tag_counts(self) -> Dict[str, int]:
        return self.docstore.tag_counts()

    def get_recent(self, limit: int) -> List[Document]:
        return self.docstore.get_recent(limit)

    def get_document(self, doc_id: str) -> Optional[Document]:
        return self.docstore.get(doc_id)


__all__ = ["Searcher"]
