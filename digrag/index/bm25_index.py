from __future__ import annotations

import logging
import math
from collections import Counter, defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from ..exceptions import IndexLoadError
from ..models import Document, SearchResult
from ..tokenizer import TokenizeFn, default_tokenizer
from .files import read_json, write_json

logger = logging.getLogger(__name__)

DEFAULT_K1 = 1.2
DEFAULT_B = 0.75

_NATIVE_KEYS = (
    "doc_ids",
    "doc_tokens",
    "inverted_index",
    "doc_lengths",
    "avg_doc_length",
    "doc_frequencies",
    "num_docs",
)


def bm25_term_score(
    tf: int,
    df: int,
    num_docs: int,
    doc_length: int,
    avg_doc_length: float,
    *,
    k1: float = DEFAULT_K1,
    b: float = DEFAULT_B,
) -> float:
    """Return the BM25 contribution of one term to one document."""

    if tf <= 0 or df <= 0 or avg_doc_length <= 0:
        return 0.0

    idf = math.log(1 + (num_docs - df + 0.5) / (df + 0.5))
    denom = tf + k1 * (1 - b + b * doc_length / avg_doc_length)
    return idf * (tf * (k1 + 1)) / denom


def _document_text(document: Document) -> str:
    return f"{document.title} {document.text}"


class BM25Index:
    """BM25 keyword index over documents, backed by an inverted index.

    The index is immutable once built; builds always start from scratch.
    """

    def __init__(
        self,
        *,
        tokenizer: TokenizeFn | None = None,
        k1: float = DEFAULT_K1,
        b: float = DEFAULT_B,
    ) -> None:
        self.tokenizer: TokenizeFn = tokenizer or default_tokenizer
        self.k1 = k1
        self.b = b
        self.doc_ids: List[str] = []
        self.doc_tokens: List[List[str]] = []
        self.inverted_index: Dict[str, List[Tuple[int, int]]] = {}
        self.doc_lengths: List[int] = []
        self.avg_doc_length: float = 0.0
        self.doc_frequencies: Dict[str, int] = {}
        self.num_docs: int = 0

    @classmethod
    def build(
        cls, documents: Iterable[Document], *, tokenizer: TokenizeFn | None = None
    ) -> "BM25Index":
        index = cls(tokenizer=tokenizer)
        doc_ids: List[str] = []
        doc_tokens: List[List[str]] = []
        for document in documents:
            doc_ids.append(document.id)
            doc_tokens.append(index.tokenizer(_document_text(document)))
        index._populate(doc_ids, doc_tokens)
        return index

    def _populate(self, doc_ids: Sequence[str], doc_tokens: Sequence[List[str]]) -> None:
        if len(doc_ids) != len(doc_tokens):
            raise IndexLoadError(
                f"BM25 index has {len(doc_ids)} ids but {len(doc_tokens)} token lists"
            )

        inverted: Dict[str, List[Tuple[int, int]]] = defaultdict(list)
        doc_freqs: Dict[str, int] = defaultdict(int)
        for doc_idx, tokens in enumerate(doc_tokens):
            for term, freq in Counter(tokens).items():
                inverted[term].append((doc_idx, freq))
                doc_freqs[term] += 1

        self.doc_ids = list(doc_ids)
        self.doc_tokens = [list(tokens) for tokens in doc_tokens]
        self.doc_lengths = [len(tokens) for tokens in doc_tokens]
        self.num_docs = len(self.doc_ids)
        self.avg_doc_length = sum(self.doc_lengths) / self.num_docs if self.num_docs else 0.0
        self.inverted_index = dict(inverted)
        self.doc_frequencies = dict(doc_freqs)

    def __len__(self) -> int:
        return len(self.doc_ids)

    def is_empty(self) -> bool:
        return not self.doc_ids

    def search(self, query: str, top_k: int = 10) -> List[SearchResult]:
        """Rank documents against ``query``; documents scoring zero are omitted.

        Each query token contributes once per occurrence. Ties keep corpus order.
        """

        if self.num_docs == 0 or top_k <= 0:
            return []

        query_tokens = self.tokenizer(query)
        if not query_tokens:
            return []

        scores: Dict[int, float] = defaultdict(float)
        for token in query_tokens:
            postings = self.inverted_index.get(token)
            if not postings:
                continue
            df = self.doc_frequencies.get(token, 0)
            for doc_idx, tf in postings:
                scores[doc_idx] += bm25_term_score(
                    tf,
                    df,
                    self.num_docs,
                    self.doc_lengths[doc_idx],
                    self.avg_doc_length,
                    k1=self.k1,
                    b=self.b,
                )

        ranked = sorted(
            ((doc_idx, score) for doc_idx, score in scores.items() if score > 0),
            key=lambda item: (-item[1], item[0]),
        )
        return [SearchResult(self.doc_ids[doc_idx], score) for doc_idx, score in ranked[:top_k]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "doc_ids": self.doc_ids,
            "doc_tokens": self.doc_tokens,
            "inverted_index": {
                term: [[doc_idx, tf] for doc_idx, tf in postings]
                for term, postings in self.inverted_index.items()
            },
            "doc_lengths": self.doc_lengths,
            "avg_doc_length": self.avg_doc_length,
            "doc_frequencies": self.doc_frequencies,
            "num_docs": self.num_docs,
        }

    @classmethod
    def from_dict(
        cls, payload: Dict[str, Any], *, tokenizer: TokenizeFn | None = None
    ) -> "BM25Index":
        """Restore an index from its native or legacy ``{doc_ids, corpus}`` form."""

        if not isinstance(payload, dict):
            raise IndexLoadError("BM25 index payload must be a JSON object")

        index = cls(tokenizer=tokenizer)
        if "corpus" in payload:
            doc_ids = payload.get("doc_ids") or []
            corpus = payload.get("corpus") or []
            index._populate(
                [str(doc_id) for doc_id in doc_ids],
                [list(map(str, tokens)) for tokens in corpus],
            )
            logger.info(
                "Converted legacy BM25 format (version %s): %d docs, %d unique terms",
                payload.get("version", "unknown"),
                index.num_docs,
                len(index.doc_frequencies),
            )
            return index

        missing = [key for key in _NATIVE_KEYS if key not in payload]
        if missing:
            raise IndexLoadError(f"BM25 index is missing fields: {', '.join(missing)}")

        try:
            index.doc_ids = [str(doc_id) for doc_id in payload["doc_ids"]]
            index.doc_tokens = [list(map(str, tokens)) for tokens in payload["doc_tokens"]]
            index.inverted_index = {
                term: [(int(doc_idx), int(tf)) for doc_idx, tf in postings]
                for term, postings in payload["inverted_index"].items()
            }
            index.doc_lengths = [int(length) for length in payload["doc_lengths"]]
            index.avg_doc_length = float(payload["avg_doc_length"])
            index.doc_frequencies = {
                term: int(df) for term, df in payload["doc_frequencies"].items()
            }
            index.num_docs = int(payload["num_docs"])
        except (TypeError, ValueError, AttributeError) as exc:
            raise IndexLoadError(f"Malformed BM25 index: {exc}") from exc

        if index.num_docs != len(index.doc_ids) or len(index.doc_lengths) != len(index.doc_ids):
            raise IndexLoadError("BM25 index field lengths are inconsistent")
        return index

    def save(self, path: Path | str) -> None:
        write_json(path, self.to_dict())

    @classmethod
    def load(
        cls,
        path: Path | str,
        *,
        tokenizer: TokenizeFn | None = None,
        missing_ok: bool = False,
    ) -> "BM25Index":
        target = Path(path)
        if missing_ok and not target.exists():
            return cls(tokenizer=tokenizer)
        return cls.from_dict(read_json(target), tokenizer=tokenizer)


__all__ = ["BM25Index", "bm25_term_score", "DEFAULT_B", "DEFAULT_K1"]
