"""
docrag - local document retrieval core.
Hash embeddings, clustered vector index and a polling indexing pipeline over a SQLite document store.
"""

__version__ = "1.0.0"
