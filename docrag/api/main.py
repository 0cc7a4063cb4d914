"""
HTTP API for document ingestion, indexing control and semantic search.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .schemas import (
    BatchResponse,
    ContextRequest,
    ContextResponse,
    DocumentCreateRequest,
    DocumentListResponse,
    DocumentResponse,
    HealthResponse,
    IngestRequest,
    IngestResponse,
    OperationResponse,
    SearchRequest,
    SearchResponse,
    SearchResult,
    StatsResponse,
)
from ..core.config import VERSION
from ..core.container import Services, build_services
from ..core.db import health_check
from ..core.documents import DocumentStatus
from ..core.errors import DocumentNotFoundError, DocumentProcessingError, VectorValidationError


def create_app(services: Optional[Services] = None, start_indexer: Optional[bool] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        services: Pre-built services (tests inject their own); built from the
            environment on startup when omitted
        start_indexer: Start the background indexing pipeline on startup.
            Defaults to ``settings.indexer_enabled``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "services", None) is None:
            app.state.services = build_services()
        svc: Services = app.state.services
        autostart = svc.settings.indexer_enabled if start_indexer is None else start_indexer
        if autostart:
            svc.pipeline.start()
        try:
            yield
        finally:
            svc.pipeline.stop()

    app = FastAPI(
        title="docrag API",
        version=VERSION,
        description="Local document retrieval with hash embeddings and a clustered vector index",
        lifespan=lifespan
    )
    app.state.services = services

    # Allow local web UIs
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_services(request: Request) -> Services:
        return request.app.state.services

    @app.get("/health", response_model=HealthResponse)
    def health_check_endpoint(request: Request):
        """Check system health."""
        svc = get_services(request)
        db_health = health_check(svc.settings.db_path)
        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=VERSION,
            db_health=db_health,
            indexer=svc.pipeline.get_status()
        )

    @app.post("/documents", response_model=DocumentResponse, status_code=201)
    def create_document_endpoint(req: DocumentCreateRequest, request: Request):
        """Store a document; the indexer picks it up on its next scan."""
        svc = get_services(request)
        document = svc.document_store.create_document(
            title=req.title,
            content=req.content,
            filename=req.filename,
            content_type=req.content_type
        )
        return DocumentResponse.from_document(document)

    @app.get("/documents", response_model=DocumentListResponse)
    def list_documents_endpoint(request: Request, status: Optional[DocumentStatus] = None,
                                indexed: Optional[bool] = None, limit: int = 100):
        svc = get_services(request)
        documents = svc.document_store.find_documents(status=status, indexed=indexed, limit=limit)
        return DocumentListResponse(documents=[DocumentResponse.from_document(d) for d in documents])

    @app.get("/documents/{document_id}", response_model=DocumentResponse)
    def get_document_endpoint(document_id: str, request: Request):
        svc = get_services(request)
        try:
            return DocumentResponse.from_document(svc.document_store.get_document(document_id))
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    @app.delete("/documents/{document_id}", response_model=OperationResponse)
    def delete_document_endpoint(document_id: str, request: Request):
        """Delete a document and its vectors."""
        svc = get_services(request)
        try:
            svc.document_store.delete_document(document_id)
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        removed = svc.rag_service.remove_document(document_id)
        return OperationResponse(success=True, count=removed)

    @app.post("/documents/{document_id}/index", response_model=DocumentResponse)
    def index_document_endpoint(document_id: str, request: Request):
        """Index one document now, bypassing the scheduler."""
        svc = get_services(request)
        try:
            document = svc.pipeline.index_document(document_id)
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except DocumentProcessingError as e:
            raise HTTPException(status_code=500, detail=str(e))
        return DocumentResponse.from_document(document)

    @app.post("/documents/{document_id}/queue", response_model=OperationResponse)
    def queue_document_endpoint(document_id: str, request: Request):
        svc = get_services(request)
        try:
            svc.rag_service.queue_for_indexing(document_id)
        except DocumentNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return OperationResponse(success=True, count=1)

    @app.post("/ingest", response_model=IngestResponse)
    def ingest_endpoint(req: IngestRequest, request: Request):
        """Synchronously index raw content without storing a document record."""
        svc = get_services(request)
        document_id = req.metadata.get("documentId")
        if document_id:
            try:
                svc.document_store.get_document(document_id)
            except DocumentNotFoundError:
                pass
            else:
                # Stored documents are indexed by the pipeline only
                raise HTTPException(status_code=409, detail=f"Document {document_id} is managed by the document store")
        try:
            chunk_ids = svc.rag_service.add_document(req.content, req.metadata)
        except VectorValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))
        document_id = chunk_ids[0].rsplit(":", 1)[0]
        return IngestResponse(document_id=document_id, chunk_ids=chunk_ids)

    @app.post("/search", response_model=SearchResponse)
    def search_endpoint(req: SearchRequest, request: Request):
        svc = get_services(request)
        try:
            hits = svc.rag_service.search(req.query, limit=req.limit, threshold=req.threshold)
        except VectorValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

        results = []
        for hit in hits:
            results.append(SearchResult(
                document_id=hit.document_id,
                title=hit.document.title if hit.document else hit.metadata.get("title"),
                score=hit.score,
                snippet=hit.snippet,
                document=DocumentResponse.from_document(hit.document) if hit.document else None
            ))
        return SearchResponse(query=req.query, results=results)

    @app.post("/context", response_model=ContextResponse)
    def context_endpoint(req: ContextRequest, request: Request):
        """Retrieval context for prompt injection."""
        svc = get_services(request)
        context = svc.rag_service.build_context(req.query, limit=req.limit, max_chars=req.max_chars)
        return ContextResponse(query=req.query, context=context)

    @app.post("/index/run", response_model=BatchResponse)
    def run_indexer_endpoint(request: Request):
        """Run one indexing scan now. Reports skipped when a scan is already in flight."""
        svc = get_services(request)
        report = svc.pipeline.check_and_index_pending()
        if report is None:
            return BatchResponse(skipped=True)
        return BatchResponse(skipped=False, found=report.found, completed=report.completed, failed=report.failed)

    @app.post("/index/reindex", response_model=OperationResponse)
    def reindex_endpoint(request: Request):
        svc = get_services(request)
        count = svc.pipeline.reindex_all()
        return OperationResponse(success=True, count=count, message=f"Marked {count} documents for re-indexing")

    @app.post("/index/queue-all", response_model=OperationResponse)
    def queue_all_endpoint(request: Request, include_errors: bool = False):
        """Queue every unindexed document; failed ones only with include_errors."""
        svc = get_services(request)
        count = svc.rag_service.queue_all_unindexed(include_errors=include_errors)
        return OperationResponse(success=True, count=count, message=f"Queued {count} documents for indexing")

    @app.post("/index/reset-stuck", response_model=OperationResponse)
    def reset_stuck_endpoint(request: Request):
        svc = get_services(request)
        count = svc.pipeline.reset_stuck_documents()
        return OperationResponse(success=True, count=count)

    @app.get("/stats", response_model=StatsResponse)
    def stats_endpoint(request: Request):
        svc = get_services(request)
        return StatsResponse(**svc.rag_service.get_stats())

    return app


app = create_app()
