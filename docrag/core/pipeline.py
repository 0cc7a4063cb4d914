"""
Document indexing pipeline.
Polls the document store for pending documents and moves each through pending -> processing -> completed | error.
"""

import concurrent.futures
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .config import Settings
from .documents import Document, DocumentStatus, DocumentStore
from .errors import DocumentNotFoundError, DocumentProcessingError
from .heartbeat import Heartbeat
from .rag_service import RAGService
from ..util.logging import logger as default_logger

TASK_NAME = "auto_index"


@dataclass
class BatchReport:
    """Outcome of one scheduler scan."""
    found: int = 0
    completed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


class IndexingPipeline:
    """
    Single-worker indexing state machine.

    A scan picks up at most ``batch_size`` documents with ``status=pending``
    and ``indexed=False`` and processes them one after another. A tick that
    arrives while a scan is still running is skipped. One document failing
    marks that document ``error`` and the batch moves on.

    Manual operations (index_document, reindex_all, reset_stuck_documents)
    take the same worker lock, so a document never has two modifications in
    flight.
    """

    def __init__(self, document_store: DocumentStore, rag_service: RAGService,
                 settings: Optional[Settings] = None, heartbeat: Optional[Heartbeat] = None, logger=None):
        self.document_store = document_store
        self.rag_service = rag_service
        self.settings = settings or Settings()
        self.logger = logger or default_logger
        self.heartbeat = heartbeat or Heartbeat(enabled=self.settings.indexer_enabled, logger=self.logger)

        self.batch_size = self.settings.indexer_batch_size
        self.timeout_sec = self.settings.indexer_timeout_sec
        self._worker_lock = threading.Lock()
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None

    @property
    def is_running(self) -> bool:
        return self.heartbeat.running

    @property
    def is_processing(self) -> bool:
        return self._worker_lock.locked()

    def start(self) -> None:
        """Register the scan task and start the scheduler thread. The first scan runs immediately."""
        if self.heartbeat.running:
            return
        self.heartbeat.register_task(TASK_NAME, self.settings.indexer_interval_sec, self.check_and_index_pending)
        self.heartbeat.start(background=True)

    def stop(self) -> None:
        if self.heartbeat.running:
            self.heartbeat.stop()
            self.heartbeat.unregister_task(TASK_NAME)
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None

    def check_and_index_pending(self) -> Optional[BatchReport]:
        """
        Index one batch of pending documents.

        Returns:
            BatchReport, or None when another scan holds the worker and this
            tick was skipped
        """
        if not self._worker_lock.acquire(blocking=False):
            self.logger.debug("Indexing scan already in progress, skipping tick")
            return None

        try:
            return self._run_batch()
        finally:
            self._worker_lock.release()

    def drain(self, max_batches: Optional[int] = None) -> BatchReport:
        """Run scans, waiting for the worker, until no pending documents remain."""
        total = BatchReport()
        batches = 0
        while max_batches is None or batches < max_batches:
            with self._worker_lock:
                report = self._run_batch()
            batches += 1
            total.found += report.found
            total.completed.extend(report.completed)
            total.failed.extend(report.failed)
            if report.found == 0:
                break
        return total

    def _run_batch(self) -> BatchReport:
        # Caller holds the worker lock
        documents = self.document_store.find_documents(
            status=DocumentStatus.PENDING,
            indexed=False,
            limit=self.batch_size
        )
        report = BatchReport(found=len(documents))
        if not documents:
            return report

        for document in documents:
            try:
                succeeded = self._process(document)
            except Exception as e:
                # Store write failed (e.g. database locked); the rest of the batch still runs
                self.logger.log_operation("indexer.process", "failed",
                                          {"document_id": document.id, "error": str(e) or e.__class__.__name__})
                succeeded = False

            if succeeded:
                report.completed.append(document.id)
            else:
                report.failed.append(document.id)

        self.logger.log_batch(report.found, len(report.completed), len(report.failed), report.failed)
        return report

    def _process(self, document: Document) -> bool:
        """Run one document through the state machine. Returns True on success."""
        try:
            self.document_store.update_document(document.id, status=DocumentStatus.PROCESSING)
        except DocumentNotFoundError:
            self.logger.warning(f"Document {document.id} disappeared before indexing")
            return False
        self.logger.log_document_transition(document.id, document.status.value, DocumentStatus.PROCESSING.value,
                                            {"title": document.title})

        try:
            records = self._prepare(document)
            self.rag_service.insert_records(document.id, records)
        except Exception as e:
            self._mark_failed(document, str(e) or e.__class__.__name__)
            return False

        try:
            self.document_store.update_document(
                document.id,
                status=DocumentStatus.COMPLETED,
                indexed=True,
                indexed_at=datetime.now(),
                error=None
            )
        except DocumentNotFoundError:
            self.logger.warning(f"Document {document.id} deleted while indexing, dropping its vectors")
            self.rag_service.remove_document(document.id)
            return False

        self.logger.log_document_transition(document.id, DocumentStatus.PROCESSING.value, DocumentStatus.COMPLETED.value,
                                            {"title": document.title, "chunks": len(records)})
        return True

    def _mark_failed(self, document: Document, message: str) -> None:
        try:
            self.document_store.update_document(
                document.id,
                status=DocumentStatus.ERROR,
                indexed=False,
                error=message
            )
        except DocumentNotFoundError:
            self.logger.warning(f"Document {document.id} deleted while indexing")
            return
        self.logger.log_document_transition(document.id, DocumentStatus.PROCESSING.value, DocumentStatus.ERROR.value,
                                            {"title": document.title, "error": message})

    def _prepare(self, document: Document):
        metadata = {
            "documentId": document.id,
            "title": document.title,
            "filename": document.filename,
            "type": document.content_type
        }
        if self.timeout_sec is None:
            return self.rag_service.prepare_records(document.content, metadata)

        # Chunk and embed off the worker so a hung document can be abandoned
        if self._executor is None:
            self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="docrag-embed")
        future = self._executor.submit(self.rag_service.prepare_records, document.content, metadata)
        try:
            return future.result(timeout=self.timeout_sec)
        except concurrent.futures.TimeoutError:
            # The abandoned job keeps its thread; later documents get a fresh one
            self._executor.shutdown(wait=False)
            self._executor = None
            raise DocumentProcessingError(document.id, f"Indexing timed out after {self.timeout_sec}s")

    def index_document(self, document_id: str) -> Document:
        """
        Index one document immediately, bypassing the scheduler.

        Already indexed documents are returned unchanged.

        Raises:
            DocumentNotFoundError: the document does not exist
            DocumentProcessingError: indexing failed; the document is left in ``error``
        """
        with self._worker_lock:
            document = self.document_store.get_document(document_id)
            if document.indexed:
                self.logger.info(f"Document already indexed: {document.id}")
                return document

            if not self._process(document):
                failed = self.document_store.get_document(document_id)
                raise DocumentProcessingError(document_id, failed.error or "Indexing failed")
            return self.document_store.get_document(document_id)

    def reindex_all(self) -> int:
        """Clear the vector index and mark every document pending. Returns the number of documents queued."""
        with self._worker_lock:
            self.rag_service.clear_index()
            count = self.document_store.bulk_update(
                {"status": DocumentStatus.PENDING, "indexed": False, "error": None}
            )

        self.logger.log_operation("indexer.reindex_all", "success", {"queued": count})
        return count

    def reset_stuck_documents(self) -> int:
        """Move every ``processing`` document back to ``pending``. Returns the number reset."""
        with self._worker_lock:
            count = self.document_store.bulk_update(
                {"status": DocumentStatus.PENDING, "indexed": False},
                status=DocumentStatus.PROCESSING
            )

        self.logger.log_operation("indexer.reset_stuck", "success", {"reset": count})
        return count

    def get_status(self):
        return {
            "running": self.is_running,
            "processing": self.is_processing,
            "batch_size": self.batch_size,
            "interval_sec": self.settings.indexer_interval_sec,
            "timeout_sec": self.timeout_sec,
            "heartbeat": self.heartbeat.get_status()
        }
