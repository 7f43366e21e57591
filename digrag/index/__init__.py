"""On-disk indices and the builder that produces them."""

from .bm25_index import BM25Index, bm25_term_score
from .builder import BuildReport, IndexBuilder
from .diff import IncrementalDiff
from .docstore import Docstore
from .files import (
    BM25_INDEX_FILE,
    DOCSTORE_FILE,
    METADATA_FILE,
    VECTOR_INDEX_FILE,
    atomic_write_bytes,
    atomic_write_text,
)
from .metadata import CURRENT_SCHEMA_VERSION, IndexMetadata
from .vector_index import VectorIndex, cosine_similarity

__all__ = [
    "BM25_INDEX_FILE",
    "BM25Index",
    "BuildReport",
    "CURRENT_SCHEMA_VERSION",
    "DOCSTORE_FILE",
    "Docstore",
    "IncrementalDiff",
    "IndexBuilder",
    "IndexMetadata",
    "METADATA_FILE",
    "VECTOR_INDEX_FILE",
    "VectorIndex",
    "atomic_write_bytes",
    "atomic_write_text",
    "bm25_term_score",
    "cosine_similarity",
]
