from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

import pytest

from digrag.clients.base import UpstreamError
from digrag.index import BM25Index, Docstore, IndexBuilder, VectorIndex
from digrag.models import Document, DocumentMetadata, SearchMode
from digrag.search import Searcher

KEYWORDS = ["rust", "python", "docker"]


class KeywordEmbedder:
    """Embeds text as keyword presence flags, so related texts share directions."""

    model_name = "keyword-model"

    def __init__(self) -> None:
        self.calls = 0

    def embed(self, text: str) -> List[float]:
        self.calls += 1
        lowered = text.lower()
        return [1.0 if keyword in lowered else 0.0 for keyword in KEYWORDS]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        return [self.embed(text) for text in texts]


class BrokenEmbedder(KeywordEmbedder):
    def embed(self, text: str) -> List[float]:
        raise UpstreamError("Upstream service error (503)")


def _doc(doc_id: str, text: str, tags: List[str]) -> Document:
    metadata = DocumentMetadata(doc_id.upper(), datetime(2025, 1, 15, tzinfo=timezone.utc), tags)
    return Document(doc_id, metadata, text)


def _searcher(documents: List[Document], **kwargs) -> Searcher:
    docstore = Docstore()
    for document in documents:
        docstore.add(document)
    vectors = VectorIndex()
    embedder = kwargs.get("embedder")
    if embedder is not None:
        for document in documents:
            vectors.add(document.id, embedder.embed(document.text))
    return Searcher(BM25Index.build(documents), vectors, docstore, **kwargs)


def test_bm25_search_finds_matching_document(sample_documents):
    searcher = _searcher(sample_documents)

    results = searcher.search("Rust", SearchMode.BM25, 5)

    assert results
    assert results[0].doc_id == sample_documents[0].id


def test_search_accepts_mode_strings(sample_documents):
    searcher = _searcher(sample_documents)

    assert searcher.search("Docker", "BM25", 3) == searcher.search("Docker", SearchMode.BM25, 3)


def test_invalid_mode_raises(sample_documents):
    searcher = _searcher(sample_documents)

    with pytest.raises(ValueError, match="Unknown search mode"):
        searcher.search("Rust", "fuzzy", 5)


def test_non_positive_top_k_returns_nothing(sample_documents):
    searcher = _searcher(sample_documents)

    assert searcher.search("Rust", SearchMode.BM25, 0) == []


def test_tag_filter_keeps_only_tagged_documents(sample_documents):
    searcher = _searcher(sample_documents)

    results = searcher.search("rust docker", SearchMode.BM25, 10, tag_filter="worklog")

    assert [result.doc_id for result in results] == [sample_documents[3].id]


def test_tag_filter_overfetches_candidates():
    documents = [
        _doc("n1", "alpha", ["other"]),
        _doc("n2", "alpha", ["keep"]),
        _doc("n3", "alpha", ["other"]),
        _doc("n4", "alpha", ["keep"]),
    ]

    wide = _searcher(documents, tag_overfetch_factor=3).search("alpha", "bm25", 2, "keep")
    narrow = _searcher(documents, tag_overfetch_factor=1).search("alpha", "bm25", 2, "keep")

    assert [result.doc_id for result in wide] == ["n2", "n4"]
    assert [result.doc_id for result in narrow] == ["n2"]


def test_semantic_search_ranks_by_embedding():
    embedder = KeywordEmbedder()
    documents = [
        _doc("py", "Python asyncio notes", ["python"]),
        _doc("rs", "Rust ownership notes", ["rust"]),
        _doc("dk", "Docker compose notes", ["infra"]),
    ]
    searcher = _searcher(documents, embedder=embedder)

    results = searcher.search("what about rust", SearchMode.SEMANTIC, 3)

    assert [result.doc_id for result in results] == ["rs"]
    assert results[0].score == pytest.approx(1.0)


def test_semantic_search_without_embedder_is_empty(sample_documents):
    searcher = _searcher(sample_documents)

    assert searcher.search("Rust", SearchMode.SEMANTIC, 5) == []
    assert not searcher.has_vector_index()


def test_semantic_search_with_vector_bypasses_embedder():
    documents = [_doc("rs", "Rust", []), _doc("py", "Python", [])]
    searcher = _searcher(documents, embedder=KeywordEmbedder())

    results = searcher.search_semantic_with_vector([0.0, 1.0, 0.0], 5)

    assert [result.doc_id for result in results] == ["py"]


def test_embedder_failure_degrades_to_empty_semantic_results():
    documents = [_doc("rs", "Rust", []), _doc("py", "Python", [])]
    searcher = _searcher(documents, embedder=KeywordEmbedder())
    searcher.embedder = BrokenEmbedder()

    assert searcher.search("rust", SearchMode.SEMANTIC, 5) == []
    assert [result.doc_id for result in searcher.search("rust", SearchMode.HYBRID, 5)] == ["rs"]


def test_hybrid_without_vectors_follows_bm25_order():
    documents = [
        _doc("a", "rust rust rust", []),
        _doc("b", "rust python", []),
        _doc("c", "python docker", []),
    ]
    searcher = _searcher(documents)

    lexical = searcher.search("rust", SearchMode.BM25, 5)
    hybrid = searcher.search("rust", SearchMode.HYBRID, 5)

    assert [result.doc_id for result in hybrid] == [result.doc_id for result in lexical]
    for rank, result in enumerate(hybrid, start=1):
        assert result.score == pytest.approx(1.0 / (60 + rank))


def test_hybrid_combines_both_rankings():
    embedder = KeywordEmbedder()
    documents = [
        _doc("lex", "docker docker docker python", []),
        _doc("both", "docker notes", []),
        _doc("sem", "python only", []),
    ]
    searcher = _searcher(documents, embedder=embedder)

    results = searcher.search("docker", SearchMode.HYBRID, 3)

    # "lex" leads BM25 and "both" leads semantic, so the fused scores tie.
    assert [result.doc_id for result in results] == ["lex", "both"]
    assert results[0].score == pytest.approx(1.0 / 61 + 1.0 / 62)
    assert results[1].score == pytest.approx(results[0].score)


def test_from_index_dir_on_missing_directory_is_empty(tmp_path):
    searcher = Searcher.from_index_dir(tmp_path / "missing")

    assert searcher.search("anything", SearchMode.HYBRID, 5) == []
    assert searcher.list_tags() == []
    assert searcher.get_recent(5) == []


def test_from_index_dir_round_trip(tmp_path, sample_documents):
    IndexBuilder().build_from_documents(sample_documents, tmp_path)

    searcher = Searcher.from_index_dir(tmp_path)

    assert searcher.search("Docker", SearchMode.BM25, 1)[0].doc_id == sample_documents[3].id
    assert searcher.list_tags() == ["diary", "infra", "memo", "python", "rust", "worklog"]
    assert searcher.tag_counts()["memo"] == 2
    recent = searcher.get_recent(2)
    assert [doc.title for doc in recent] == ["MCPサーバーの実装", "Pythonの非同期処理"]
    assert searcher.get_document("missing") is None


def test_invalid_overfetch_factor(sample_documents):
    with pytest.raises(ValueError):
        _searcher(sample_documents, tag_overfetch_factor=0)
