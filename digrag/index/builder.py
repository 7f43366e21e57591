"""Build and incrementally refresh the on-disk index directory."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..clients.base import ClientError
from ..embedding.base import Embedder
from ..exceptions import BuildError, IndexLoadError
from ..loader import load_documents
from ..models import Document
from ..tokenizer import TokenizeFn
from .bm25_index import BM25Index
from .diff import IncrementalDiff
from .docstore import Docstore
from .files import BM25_INDEX_FILE, DOCSTORE_FILE, METADATA_FILE, VECTOR_INDEX_FILE
from .metadata import IndexMetadata
from .vector_index import VectorIndex

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, int, str], None]

DEFAULT_BATCH_SIZE = 10
DEFAULT_BATCH_DELAY_S = 0.5
TOTAL_STEPS = 6


@dataclass
class BuildReport:
    output_dir: Path
    doc_count: int
    incremental: bool
    embedded: int = 0
    reused_embeddings: int = 0
    embedding_model: Optional[str] = None
    diff: Optional[IncrementalDiff] = None


def _noop_progress(step: int, total: int, message: str) -> None:
    return None


def _dedupe(documents: Iterable[Document]) -> List[Document]:
    unique: Dict[str, Document] = {}
    duplicates = 0
    for document in documents:
        if document.id in unique:
            duplicates += 1
            continue
        unique[document.id] = document
    if duplicates:
        logger.warning("Dropped %d documents with duplicate ids", duplicates)
    return list(unique.values())


class IndexBuilder:
    """Turn documents into the BM25, vector, docstore and metadata artifacts.

    Every build rewrites all four files. Incremental builds reuse stored
    embeddings for documents whose content hash did not change, so only
    added and modified documents go to the embedder.
    """

    def __init__(
        self,
        *,
        embedder: Optional[Embedder] = None,
        tokenizer: Optional[TokenizeFn] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay_s: float = DEFAULT_BATCH_DELAY_S,
        progress: Optional[ProgressFn] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.embedder = embedder
        self.tokenizer = tokenizer
        self.batch_size = batch_size
        self.batch_delay_s = batch_delay_s
        self.progress: ProgressFn = progress or _noop_progress
        self._sleep = sleep

    def has_embedder(self) -> bool:
        return self.embedder is not None

    @staticmethod
    def load_existing_metadata(index_dir: Path | str) -> Optional[IndexMetadata]:
        """Return metadata usable for an incremental build, or None."""

        path = Path(index_dir) / METADATA_FILE
        if not path.exists():
            return None
        try:
            metadata = IndexMetadata.load(path)
        except IndexLoadError as exc:
            logger.warning("Ignoring unreadable index metadata: %s", exc)
            return None
        if metadata.needs_full_rebuild():
            logger.info("Index schema %r predates incremental builds", metadata.schema_version)
            return None
        return metadata

    @staticmethod
    def has_incremental_support(index_dir: Path | str) -> bool:
        return IndexBuilder.load_existing_metadata(index_dir) is not None

    def build(
        self,
        inputs: Sequence[Path | str],
        output_dir: Path | str,
        *,
        incremental: bool = False,
        force: bool = False,
    ) -> BuildReport:
        self.progress(1, TOTAL_STEPS, "Loading documents...")
        documents = load_documents(inputs)
        return self.build_from_documents(
            documents, output_dir, incremental=incremental, force=force
        )

    def build_from_documents(
        self,
        documents: Iterable[Document],
        output_dir: Path | str,
        *,
        incremental: bool = False,
        force: bool = False,
    ) -> BuildReport:
        output = Path(output_dir)
        docs = _dedupe(documents)

        existing: Optional[IndexMetadata] = None
        if incremental and force:
            logger.info("Forcing full rebuild of %s", output)
        elif incremental:
            existing = self.load_existing_metadata(output)
            if existing is None:
                logger.warning("No compatible index in %s; performing full rebuild", output)

        diff: Optional[IncrementalDiff] = None
        if existing is not None:
            diff = IncrementalDiff.compute(docs, existing.doc_hashes)
            logger.info("Incremental build: %s", diff.summary())

        self.progress(2, TOTAL_STEPS, "Building BM25 index...")
        bm25 = BM25Index.build(docs, tokenizer=self.tokenizer)

        self.progress(3, TOTAL_STEPS, "Building document store...")
        docstore = self._build_docstore(docs)

        self.progress(4, TOTAL_STEPS, "Generating embeddings...")
        vectors, embedded, reused, model = self._build_vectors(docs, output, diff, existing)

        self.progress(5, TOTAL_STEPS, "Saving indices...")
        output.mkdir(parents=True, exist_ok=True)
        metadata = IndexMetadata.new(len(docs), model)
        for document in docs:
            metadata.update_doc_hash(document.id, document.content_hash())

        bm25.save(output / BM25_INDEX_FILE)
        docstore.save(output / DOCSTORE_FILE)
        vectors.save(output / VECTOR_INDEX_FILE)
        metadata.save(output / METADATA_FILE)

        self.progress(6, TOTAL_STEPS, "Done!")
        logger.info(
            "Indexed %d documents into %s (embedded=%d, reused=%d)",
            len(docs),
            output,
            embedded,
            reused,
        )
        return BuildReport(
            output_dir=output,
            doc_count=len(docs),
            incremental=diff is not None,
            embedded=embedded,
            reused_embeddings=reused,
            embedding_model=model,
            diff=diff,
        )

    def _build_docstore(self, docs: List[Document]) -> Docstore:
        docstore = Docstore()
        for document in docs:
            docstore.add(document)
        return docstore

    def _build_vectors(
        self,
        docs: List[Document],
        output: Path,
        diff: Optional[IncrementalDiff],
        existing: Optional[IndexMetadata],
    ) -> tuple[VectorIndex, int, int, Optional[str]]:
        previous = VectorIndex()
        if diff is not None:
            previous = VectorIndex.load(output / VECTOR_INDEX_FILE, missing_ok=True)
            previous.remove_batch([*diff.removed, *(document.id for document in diff.modified)])

            if (
                self.embedder is not None
                and existing is not None
                and existing.embedding_model not in (None, self.embedder.model_name)
                and not previous.is_empty()
            ):
                logger.warning(
                    "Embedding model changed from %s to %s; re-embedding all documents",
                    existing.embedding_model,
                    self.embedder.model_name,
                )
                previous = VectorIndex()

        if self.embedder is None:
            index = VectorIndex(previous.dimension)
            for document in docs:
                vector = previous.get_vector(document.id)
                if vector is not None:
                    index.add(document.id, vector)
            if diff is None:
                self.progress(4, TOTAL_STEPS, "Skipping embeddings (no embedder configured)...")
            model = None
            if existing is not None and not index.is_empty():
                model = existing.embedding_model
            return index, 0, len(index), model

        pending = [document for document in docs if not previous.contains(document.id)]
        fresh = self._embed_documents(self.embedder, pending)

        index = VectorIndex()
        reused = 0
        for document in docs:
            vector = fresh.get(document.id)
            if vector is None:
                vector = previous.get_vector(document.id)
                reused += 1
            if vector is None:
                raise BuildError(f"No embedding available for document {document.id}")
            try:
                index.add(document.id, vector)
            except ValueError as exc:
                raise BuildError(f"Cannot index embedding for {document.id}: {exc}") from exc
        return index, len(fresh), reused, self.embedder.model_name

    def _embed_documents(
        self, embedder: Embedder, documents: List[Document]
    ) -> Dict[str, List[float]]:
        if not documents:
            return {}

        total_batches = (len(documents) + self.batch_size - 1) // self.batch_size
        logger.info(
            "Generating embeddings for %d documents in %d batches", len(documents), total_batches
        )
        vectors: Dict[str, List[float]] = {}
        for batch_idx in range(total_batches):
            if batch_idx > 0 and self.batch_delay_s > 0:
                self._sleep(self.batch_delay_s)

            batch = documents[batch_idx * self.batch_size : (batch_idx + 1) * self.batch_size]
            self.progress(
                4,
                TOTAL_STEPS,
                f"Embedding batch {batch_idx + 1}/{total_batches} ({len(batch)} documents)...",
            )
            try:
                embeddings = embedder.embed_batch([document.text for document in batch])
            except ClientError as exc:
                raise BuildError(
                    f"Embedding batch {batch_idx + 1}/{total_batches} failed: {exc}"
                ) from exc
            if len(embeddings) != len(batch):
                raise BuildError(
                    f"Embedder returned {len(embeddings)} vectors for {len(batch)} documents"
                )
            for document, vector in zip(batch, embeddings):
                vectors[document.id] = list(vector)
        return vectors


__all__ = ["BuildReport", "IndexBuilder", "ProgressFn"]
