"""
Request and response models for the retrieval HTTP API.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from ..core.documents import Document, DocumentStatus


class DocumentCreateRequest(BaseModel):
    title: str
    content: str
    filename: Optional[str] = None
    content_type: str = "text/plain"

    @field_validator('title')
    @classmethod
    def title_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('title cannot be empty')
        return v


class DocumentResponse(BaseModel):
    id: str
    title: str
    filename: Optional[str] = None
    content_type: str
    status: DocumentStatus
    indexed: bool
    indexed_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(
            id=document.id,
            title=document.title,
            filename=document.filename,
            content_type=document.content_type,
            status=document.status,
            indexed=document.indexed,
            indexed_at=document.indexed_at,
            error=document.error,
            created_at=document.created_at,
            updated_at=document.updated_at
        )


class DocumentListResponse(BaseModel):
    documents: List[DocumentResponse]


class IngestRequest(BaseModel):
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('content cannot be empty')
        return v


class IngestResponse(BaseModel):
    document_id: str
    chunk_ids: List[str]


class SearchRequest(BaseModel):
    query: str
    limit: int = Field(default=5, ge=1, le=100)
    threshold: float = Field(default=0.0, ge=-1.0, le=1.0)

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v


class SearchResult(BaseModel):
    document_id: Optional[str] = None
    title: Optional[str] = None
    score: float
    snippet: str
    document: Optional[DocumentResponse] = None


class SearchResponse(BaseModel):
    query: str
    results: List[SearchResult]


class ContextRequest(BaseModel):
    query: str
    limit: int = Field(default=3, ge=1, le=20)
    max_chars: int = Field(default=4000, ge=1)


class ContextResponse(BaseModel):
    query: str
    context: str


class OperationResponse(BaseModel):
    success: bool
    count: int = 0
    message: Optional[str] = None


class BatchResponse(BaseModel):
    skipped: bool
    found: int = 0
    completed: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)


class StatsResponse(BaseModel):
    documentCount: int
    indexedCount: int
    pendingCount: int
    processingCount: int
    completedCount: int
    errorCount: int
    vectorCount: int
    dimension: int
    indexBuilt: bool
    numClusters: int
    cacheSize: int


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    indexer: Dict[str, Any]
