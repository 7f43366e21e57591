from __future__ import annotations

import json

import pytest

from digrag.exceptions import IndexLoadError
from digrag.index.metadata import CURRENT_SCHEMA_VERSION, IndexMetadata


def test_new_metadata_uses_current_schema():
    metadata = IndexMetadata.new(10, "model")

    assert metadata.doc_count == 10
    assert metadata.embedding_model == "model"
    assert metadata.schema_version == CURRENT_SCHEMA_VERSION == "2.0"
    assert metadata.doc_hashes == {}
    assert metadata.created_at.endswith("Z")
    assert not metadata.needs_full_rebuild()


@pytest.mark.parametrize(
    "version, expected",
    [
        ("", True),
        ("1.0", True),
        ("1.9", True),
        ("garbage", True),
        ("2.0", False),
        ("2.5", False),
        ("10", False),
    ],
)
def test_needs_full_rebuild(version, expected):
    metadata = IndexMetadata(doc_count=0, created_at="", schema_version=version)

    assert metadata.needs_full_rebuild() is expected


def test_doc_hash_bookkeeping():
    metadata = IndexMetadata.new(0)

    metadata.update_doc_hash("doc1", "abc")
    metadata.update_doc_hash("doc1", "def")
    metadata.update_doc_hash("doc2", "ghi")
    metadata.remove_doc_hash("doc2")
    metadata.remove_doc_hash("missing")

    assert metadata.get_doc_hash("doc1") == "def"
    assert metadata.get_doc_hash("doc2") is None
    assert metadata.doc_hashes == {"doc1": "def"}


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "metadata.json"
    metadata = IndexMetadata.new(2, None)
    metadata.update_doc_hash("a", "h1")

    metadata.save(path)
    payload = json.loads(path.read_text(encoding="utf-8"))

    assert set(payload) == {
        "doc_count",
        "created_at",
        "embedding_model",
        "schema_version",
        "doc_hashes",
    }
    assert IndexMetadata.load(path) == metadata


def test_old_format_loads_with_empty_schema(tmp_path):
    path = tmp_path / "metadata.json"
    path.write_text(
        json.dumps({"doc_count": 5, "created_at": "2025-01-01T00:00:00Z", "embedding_model": "old"}),
        encoding="utf-8",
    )

    metadata = IndexMetadata.load(path)

    assert metadata.schema_version == ""
    assert metadata.doc_hashes == {}
    assert metadata.needs_full_rebuild()


def test_malformed_metadata_is_rejected():
    with pytest.raises(IndexLoadError):
        IndexMetadata.from_dict({"created_at": "x"})
