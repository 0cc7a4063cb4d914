"""
Service composition.
Builds the document store, embedding provider, vector index, RAG service and pipeline once from Settings.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Settings, validate_config
from .documents import DocumentStore
from .errors import ConfigurationError
from .heartbeat import Heartbeat
from .pipeline import IndexingPipeline
from .rag_service import RAGService
from ..util.logging import logger as default_logger
from ..vector.embeddings import HashNgramEmbedding
from ..vector.index import ClusteredVectorIndex


@dataclass
class Services:
    settings: Settings
    document_store: DocumentStore
    embedding_provider: HashNgramEmbedding
    vector_index: ClusteredVectorIndex
    rag_service: RAGService
    pipeline: IndexingPipeline


def build_services(settings: Optional[Settings] = None, logger=None) -> Services:
    """Construct and wire all services. Raises ConfigurationError on invalid settings."""
    settings = settings or Settings.from_env()
    logger = logger or default_logger

    issues = validate_config(settings)
    if issues:
        raise ConfigurationError(issues)

    if settings.debug:
        logger.set_level(logging.DEBUG)

    document_store = DocumentStore(settings.db_path)
    embedding_provider = HashNgramEmbedding(
        dimension=settings.embed_dimension,
        cache_size=settings.embed_cache_size,
        logger=logger
    )
    vector_index = ClusteredVectorIndex(
        dimension=settings.embed_dimension,
        num_clusters=settings.index_num_clusters,
        max_iterations=settings.index_max_iterations,
        tolerance=settings.index_tolerance,
        brute_force_threshold=settings.index_brute_force_threshold,
        clusters_to_search=settings.index_clusters_to_search,
        seed=settings.index_seed,
        logger=logger
    )
    rag_service = RAGService(embedding_provider, vector_index, document_store, settings=settings, logger=logger)
    pipeline = IndexingPipeline(
        document_store,
        rag_service,
        settings=settings,
        heartbeat=Heartbeat(enabled=settings.indexer_enabled, logger=logger),
        logger=logger
    )

    return Services(
        settings=settings,
        document_store=document_store,
        embedding_provider=embedding_provider,
        vector_index=vector_index,
        rag_service=rag_service,
        pipeline=pipeline
    )
