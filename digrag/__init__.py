"""Local keyword, semantic and hybrid search over tagged memo documents."""

from .config import DigragConfig, load_config
from .exceptions import BuildError, ConfigError, DigragError, DocumentParseError, IndexLoadError
from .index import BM25Index, Docstore, IncrementalDiff, IndexBuilder, IndexMetadata, VectorIndex
from .models import Document, DocumentMetadata, SearchMode, SearchResult, compute_content_hash
from .search import ReciprocalRankFusion, Searcher

__version__ = "0.3.0"

__all__ = [
    "BM25Index",
    "BuildError",
    "ConfigError",
    "DigragConfig",
    "DigragError",
    "Docstore",
    "Document",
    "DocumentMetadata",
    "DocumentParseError",
    "IncrementalDiff",
    "IndexBuilder",
    "IndexLoadError",
    "IndexMetadata",
    "ReciprocalRankFusion",
    "SearchMode",
    "SearchResult",
    "Searcher",
    "VectorIndex",
    "compute_content_hash",
    "load_config",
]
