"""
Retrieval facade used by the host application.
Ingests document text into the vector index and answers semantic queries with source documents and snippets.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .config import Settings
from .documents import Document, DocumentStatus, DocumentStore
from .errors import DocumentNotFoundError
from ..util.logging import logger as default_logger
from ..vector.chunking import chunk_text
from ..vector.embeddings import IEmbeddingProvider
from ..vector.index import ClusteredVectorIndex
from ..vector.types import VectorRecord


@dataclass
class SearchHit:
    """A ranked search result mapped back to its source document."""
    document: Optional[Document]
    score: float
    snippet: str
    metadata: Dict[str, Any]

    @property
    def document_id(self) -> Optional[str]:
        return self.metadata.get("documentId")


def make_snippet(text: str, max_chars: int) -> str:
    text = " ".join((text or "").split())
    if len(text) <= max_chars:
        return text
    return text[:max(max_chars - 3, 0)].rstrip() + "..."


class RAGService:
    """
    Composes the chunker, embedding provider and vector index over a document store.

    Chunk vectors carry ``documentId`` in their metadata, which is how search
    results are mapped back to documents and how a document's vectors are
    replaced when it is indexed again.
    """

    def __init__(self, embedding_provider: IEmbeddingProvider, vector_index: ClusteredVectorIndex,
                 document_store: DocumentStore, settings: Optional[Settings] = None, logger=None):
        self.embedding_provider = embedding_provider
        self.vector_index = vector_index
        self.document_store = document_store
        self.settings = settings or Settings()
        self.logger = logger or default_logger

    @property
    def initialized(self) -> bool:
        return getattr(self.embedding_provider, "initialized", True)

    def initialize(self, progress_callback=None) -> None:
        init = getattr(self.embedding_provider, "initialize", None)
        if init is not None:
            init(progress_callback)

    def prepare_records(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> List[VectorRecord]:
        """
        Chunk and embed ``content`` without touching the index.

        Args:
            content: Raw document text
            metadata: Source metadata (documentId, title, filename, type)

        Returns:
            One VectorRecord per chunk, ids of the form ``{documentId}:{chunk_index}``
        """
        metadata = dict(metadata or {})
        document_id = metadata.get("documentId") or uuid.uuid4().hex
        metadata["documentId"] = document_id

        chunks = chunk_text(
            content or "",
            chunk_size=self.settings.chunk_size,
            overlap=self.settings.chunk_overlap,
            min_chunk_size=self.settings.min_chunk_size
        )
        vectors = self.embedding_provider.embed_texts([chunk.text for chunk in chunks])

        records = []
        for chunk, vector in zip(chunks, vectors):
            chunk_metadata = dict(metadata)
            chunk_metadata.update({
                "chunkIndex": chunk.index,
                "startPos": chunk.start_pos,
                "endPos": chunk.end_pos,
                "text": chunk.text
            })
            records.append(VectorRecord(id=f"{document_id}:{chunk.index}", vector=vector, metadata=chunk_metadata))
        return records

    def insert_records(self, document_id: str, records: List[VectorRecord]) -> List[str]:
        """Replace the vectors of ``document_id`` with ``records`` in one index operation."""
        removed = self.vector_index.replace_where(records, documentId=document_id)

        self.logger.log_vector_operation("added", document_id, {
            "chunks": len(records),
            "replaced": removed,
            "dimension": self.vector_index.dimension
        })
        return [record.id for record in records]

    def add_document(self, content: str, metadata: Optional[Dict[str, Any]] = None) -> List[str]:
        """
        Synchronously chunk, embed and index one document.

        Every chunk is embedded before anything is inserted, so a failure
        leaves the index unchanged.

        Returns:
            The ids of the inserted chunk vectors
        """
        records = self.prepare_records(content, metadata)
        document_id = records[0].metadata["documentId"]
        return self.insert_records(document_id, records)

    def remove_document(self, document_id: str) -> int:
        """Drop all vectors belonging to ``document_id``."""
        removed = self.vector_index.delete_where(documentId=document_id)
        if removed:
            self.logger.log_vector_operation("removed", document_id, {"chunks": removed})
        return removed

    def queue_for_indexing(self, document: Union[Document, str]) -> None:
        """Mark a document pending so the next scheduler tick indexes it."""
        document_id = document.id if isinstance(document, Document) else document
        self.document_store.update_document(
            document_id,
            status=DocumentStatus.PENDING,
            indexed=False,
            error=None
        )
        self.logger.log_operation("document.queued", "success", {"document_id": document_id})

    def queue_all_unindexed(self, include_errors: bool = False) -> int:
        """
        Queue every unindexed document in one pass.

        Documents currently ``processing`` are left to the worker. Failed
        documents are only re-queued when ``include_errors`` is set.

        Returns:
            Number of documents queued
        """
        queued = 0
        for document in self.document_store.find_documents(indexed=False):
            if document.status == DocumentStatus.PROCESSING:
                continue
            if document.status == DocumentStatus.ERROR and not include_errors:
                continue
            try:
                self.document_store.update_document(
                    document.id,
                    status=DocumentStatus.PENDING,
                    indexed=False,
                    error=None
                )
            except DocumentNotFoundError:
                continue
            queued += 1

        self.logger.log_operation("document.queue_all", "success",
                                  {"queued": queued, "include_errors": include_errors})
        return queued

    def search(self, query: str, limit: int = 5, threshold: float = 0.0) -> List[SearchHit]:
        """
        Semantic search over indexed chunks, best chunk per document.

        Args:
            query: Free text query
            limit: Maximum number of documents to return
            threshold: Minimum cosine similarity

        Returns:
            SearchHit list, highest score first
        """
        if limit <= 0 or not query or not query.strip():
            return []

        query_vector = self.embedding_provider.embed_text(query)
        chunk_results = self.vector_index.search(query_vector, k=limit * 3, threshold=threshold)

        hits: List[SearchHit] = []
        seen = set()
        for result in chunk_results:
            document_id = result.metadata.get("documentId")
            key = document_id or result.id
            if key in seen:
                continue

            document = None
            if document_id:
                try:
                    document = self.document_store.get_document(document_id)
                except DocumentNotFoundError:
                    document = None

            seen.add(key)
            hits.append(SearchHit(
                document=document,
                score=result.score,
                snippet=make_snippet(result.metadata.get("text", ""), self.settings.search_snippet_chars),
                metadata=result.metadata
            ))
            if len(hits) >= limit:
                break

        self.logger.log_operation("search", "success", {"limit": limit, "hits": len(hits)})
        return hits

    def build_context(self, query: str, limit: int = 3, max_chars: int = 4000) -> str:
        """Numbered context blocks for prompt injection, bounded by ``max_chars``."""
        blocks = []
        used = 0
        for idx, hit in enumerate(self.search(query, limit=limit), start=1):
            title = hit.document.title if hit.document else hit.metadata.get("title", "Untitled")
            text = (hit.metadata.get("text") or hit.snippet).strip()
            block = f"[{idx}] {title} (score {hit.score:.2f})\n{text}"
            if used + len(block) > max_chars:
                remaining = max_chars - used
                if remaining <= 0:
                    break
                block = block[:remaining]
            blocks.append(block)
            used += len(block) + 2
        return "\n\n".join(blocks)

    def clear_index(self) -> None:
        self.vector_index.clear()
        self.logger.log_operation("vector.clear", "success")

    def get_stats(self) -> Dict[str, Any]:
        """Document and index counters for observability."""
        counts = self.document_store.count_documents()
        index_stats = self.vector_index.get_stats()
        cache_len = getattr(self.embedding_provider, "cache_len", None)
        return {
            "documentCount": counts["total"],
            "indexedCount": counts["indexed"],
            "pendingCount": counts[DocumentStatus.PENDING.value],
            "processingCount": counts[DocumentStatus.PROCESSING.value],
            "completedCount": counts[DocumentStatus.COMPLETED.value],
            "errorCount": counts[DocumentStatus.ERROR.value],
            "vectorCount": index_stats["num_vectors"],
            "dimension": index_stats["dimension"],
            "indexBuilt": index_stats["indexed"],
            "numClusters": index_stats["num_clusters"],
            "cacheSize": cache_len() if cache_len else 0
        }
