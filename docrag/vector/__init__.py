"""
Vector layer: embeddings, chunking and the clustered similarity index.
"""

from .index import IVectorStore, ClusteredVectorIndex
from .types import VectorRecord, QueryResult, TextChunk
from .embeddings import IEmbeddingProvider, HashNgramEmbedding, cosine_similarity
from .chunking import chunk_text, iter_chunks

__all__ = [
    'IVectorStore',
    'ClusteredVectorIndex',
    'VectorRecord',
    'QueryResult',
    'TextChunk',
    'IEmbeddingProvider',
    'HashNgramEmbedding',
    'cosine_similarity',
    'chunk_text',
    'iter_chunks'
]
