"""
In-memory vector index with k-means clustering for approximate nearest-neighbor search.
Small corpora are searched exhaustively; larger ones only scan the clusters nearest the query.
"""

from abc import ABC, abstractmethod
import threading
import time
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np

from ..core.errors import VectorValidationError
from ..util.logging import logger as default_logger
from .types import VectorRecord, QueryResult


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def add(self, record_id: str, vector, metadata: Optional[Dict[str, object]] = None) -> None:
        """Add a single vector to the store."""
        pass

    @abstractmethod
    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add multiple vector records to the store."""
        pass

    @abstractmethod
    def search(self, query_vector, k: int = 10, threshold: float = 0.0) -> List[QueryResult]:
        """Search for similar vectors and return ranked results."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass


class ClusteredVectorIndex(IVectorStore):
    """Cosine-similarity vector index partitioned by k-means clusters.

    Adding or deleting a record marks the cluster index dirty; the next
    search over a corpus at or above ``brute_force_threshold`` rebuilds it.
    Every operation is serialized behind one lock, so a search that triggers
    a rebuild blocks until the rebuild completes and no caller ever sees a
    partially built index.
    """

    def __init__(self, dimension: int = 128, num_clusters: int = 16, max_iterations: int = 10,
                 tolerance: float = 0.01, brute_force_threshold: int = 100,
                 clusters_to_search: int = 3, seed: Optional[int] = None, logger=None):
        self.dimension = dimension
        self.num_clusters = num_clusters
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.brute_force_threshold = brute_force_threshold
        self.clusters_to_search = clusters_to_search
        self.logger = logger or default_logger

        self._rng = np.random.default_rng(seed)
        self._lock = threading.RLock()
        self._records: Dict[str, VectorRecord] = {}
        self._centroids = np.zeros((0, dimension))
        self._clusters: Dict[int, List[str]] = {}
        self._index_info: Optional[Dict[str, object]] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._records

    def _validate(self, vector, context: str) -> np.ndarray:
        array = np.asarray(vector, dtype=np.float64)
        if array.ndim != 1 or array.shape[0] != self.dimension:
            actual = array.shape[0] if array.ndim == 1 else array.size
            raise VectorValidationError(self.dimension, actual, context=context)
        return array

    def add(self, record_id: str, vector, metadata: Optional[Dict[str, object]] = None) -> None:
        """Add or overwrite a vector. Raises VectorValidationError on a dimension mismatch."""
        array = self._validate(vector, "Vector")
        record = VectorRecord(
            id=record_id,
            vector=array,
            metadata=dict(metadata or {}),
            norm=float(np.linalg.norm(array))
        )
        with self._lock:
            self._records[record_id] = record
            self._index_info = None

    def batch_add(self, records: List[VectorRecord]) -> None:
        """Add several records; all are validated before any is stored."""
        arrays = [self._validate(record.vector, "Vector") for record in records]
        with self._lock:
            self._store(records, arrays)

    def replace_where(self, records: List[VectorRecord], **metadata) -> int:
        """
        Atomically swap every record matching ``metadata`` for ``records``.

        Validation happens first, so a bad vector leaves the old records in
        place. Searches never observe the state between delete and insert.

        Returns:
            Number of records removed
        """
        arrays = [self._validate(record.vector, "Vector") for record in records]
        with self._lock:
            removed = self.delete_where(**metadata)
            self._store(records, arrays)
            return removed

    def _store(self, records: List[VectorRecord], arrays: List[np.ndarray]) -> None:
        # Caller holds the lock
        for record, array in zip(records, arrays):
            self._records[record.id] = VectorRecord(
                id=record.id,
                vector=array,
                metadata=dict(record.metadata or {}),
                norm=float(np.linalg.norm(array))
            )
        if records:
            self._index_info = None

    def get(self, record_id: str) -> Optional[VectorRecord]:
        with self._lock:
            return self._records.get(record_id)

    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID. Returns True if it existed."""
        with self._lock:
            if record_id not in self._records:
                return False
            del self._records[record_id]
            self._index_info = None
            return True

    def delete_where(self, **metadata) -> int:
        """Delete every record whose metadata matches all given key/value pairs."""
        with self._lock:
            doomed = [
                record_id for record_id, record in self._records.items()
                if all(record.metadata.get(key) == value for key, value in metadata.items())
            ]
            for record_id in doomed:
                del self._records[record_id]
            if doomed:
                self._index_info = None
            return len(doomed)

    def clear(self) -> None:
        """Clear all records, centroids and cluster assignments."""
        with self._lock:
            self._records.clear()
            self._clusters.clear()
            self._centroids = np.zeros((0, self.dimension))
            self._index_info = None

    @property
    def is_built(self) -> bool:
        with self._lock:
            return self._index_info is not None

    def build_index(self) -> None:
        """Cluster the corpus with k-means. No-op when the corpus is empty."""
        with self._lock:
            if not self._records:
                return

            start_time = time.monotonic()
            ids = list(self._records.keys())
            matrix = np.vstack([self._records[record_id].vector for record_id in ids])

            centroids, iterations = self._kmeans(matrix, min(self.num_clusters, len(ids)))
            assignments = self._nearest_centroids(matrix, centroids)

            clusters: Dict[int, List[str]] = {}
            for record_id, cluster_idx in zip(ids, assignments):
                clusters.setdefault(int(cluster_idx), []).append(record_id)

            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._centroids = centroids
            self._clusters = clusters
            self._index_info = {
                "built": True,
                "built_at": datetime.now().isoformat(),
                "num_vectors": len(ids),
                "num_clusters": len(centroids),
                "iterations": iterations,
                "elapsed_ms": round(elapsed_ms, 2)
            }

        self.logger.log_index_build(len(ids), len(centroids), iterations, elapsed_ms)

    def _kmeans(self, matrix: np.ndarray, k: int):
        """Lloyd iterations from k distinct random samples. Returns (centroids, iterations)."""
        picks = self._rng.choice(matrix.shape[0], size=k, replace=False)
        centroids = matrix[picks].copy()

        iterations = 0
        for _ in range(self.max_iterations):
            iterations += 1
            assignments = self._nearest_centroids(matrix, centroids)

            changed = False
            for cluster_idx in range(k):
                members = matrix[assignments == cluster_idx]
                if len(members) == 0:
                    continue
                new_centroid = members.mean(axis=0)
                if np.linalg.norm(centroids[cluster_idx] - new_centroid) > self.tolerance:
                    changed = True
                centroids[cluster_idx] = new_centroid

            if not changed:
                break

        return centroids, iterations

    @staticmethod
    def _centroid_distances(vectors: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        # Euclidean distances, shape (len(vectors), len(centroids)), via
        # |v|^2 - 2 v.c + |c|^2 so no (n, k, D) temporary is allocated
        squared = (
            np.sum(vectors * vectors, axis=1)[:, np.newaxis]
            - 2.0 * (vectors @ centroids.T)
            + np.sum(centroids * centroids, axis=1)[np.newaxis, :]
        )
        return np.sqrt(np.maximum(squared, 0.0))

    def _nearest_centroids(self, vectors: np.ndarray, centroids: np.ndarray) -> np.ndarray:
        return np.argmin(self._centroid_distances(vectors, centroids), axis=1)

    def search(self, query_vector, k: int = 10, threshold: float = 0.0) -> List[QueryResult]:
        """
        Return up to ``k`` records ranked by cosine similarity to the query.

        Corpora smaller than ``brute_force_threshold`` are ranked exhaustively.
        Larger corpora are restricted to the ids of the ``clusters_to_search``
        centroids nearest the query, so true neighbours outside those clusters
        can be missed.

        Args:
            query_vector: Query embedding of the index dimension
            k: Maximum number of results
            threshold: Minimum similarity for a result to be returned

        Returns:
            QueryResult list, highest score first
        """
        query = self._validate(query_vector, "Query vector")
        if k <= 0:
            return []

        with self._lock:
            if not self._records:
                return []

            if len(self._records) < self.brute_force_threshold:
                candidates = list(self._records.keys())
            else:
                if self._index_info is None:
                    self.build_index()
                candidates = self._cluster_candidates(query)

            return self._rank(query, candidates, k, threshold)

    def _cluster_candidates(self, query: np.ndarray) -> List[str]:
        distances = self._centroid_distances(query[np.newaxis, :], self._centroids)[0]
        nearest = np.argsort(distances, kind="stable")[:min(self.clusters_to_search, len(distances))]

        candidates: List[str] = []
        for cluster_idx in nearest:
            candidates.extend(self._clusters.get(int(cluster_idx), []))
        return candidates

    def _rank(self, query: np.ndarray, candidates: List[str], k: int, threshold: float) -> List[QueryResult]:
        if not candidates:
            return []

        query_norm = float(np.linalg.norm(query))
        records = [self._records[record_id] for record_id in candidates]
        matrix = np.vstack([record.vector for record in records])
        norms = np.array([record.norm for record in records]) * query_norm

        dots = matrix @ query
        scores = np.zeros(len(records))
        nonzero = norms > 0
        scores[nonzero] = dots[nonzero] / norms[nonzero]

        results = [
            QueryResult(id=record.id, score=float(score), metadata=dict(record.metadata))
            for record, score in zip(records, scores)
            if score >= threshold
        ]
        results.sort(key=lambda result: result.score, reverse=True)
        return results[:k]

    def get_stats(self) -> Dict[str, object]:
        """Index statistics for monitoring."""
        with self._lock:
            return {
                "num_vectors": len(self._records),
                "dimension": self.dimension,
                "indexed": self._index_info is not None,
                "num_clusters": len(self._centroids) if self._index_info is not None else 0,
                "index_info": dict(self._index_info) if self._index_info else None
            }
