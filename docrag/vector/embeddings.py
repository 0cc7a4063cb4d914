"""
Hash-based text embeddings.
Deterministic n-gram feature hashing, no model download or external ML service.
"""

from abc import ABC, abstractmethod
from collections import OrderedDict
import math
import re
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from ..core.errors import VectorValidationError
from ..util.logging import logger as default_logger

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# Seeds for the three n-gram slots and the term-frequency slot
NGRAM_SEEDS = (31, 37, 41)
NGRAM_SLOT_WEIGHTS = (1.0, 0.7, 0.5)
TERM_SEED = 43
NGRAM_SIZES = (1, 2, 3)

ProgressCallback = Callable[[Dict[str, object]], None]


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> np.ndarray:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass

    def embed_texts(self, texts: Sequence[str]) -> np.ndarray:
        """
        Embed multiple texts into vectors.

        Returns:
            Numpy array of shape (len(texts), embedding_dim)
        """
        if not texts:
            return np.zeros((0, self.get_dimension()))
        return np.vstack([self.embed_text(text) for text in texts])


def string_hash(text: str, seed: int = 0) -> int:
    """
    32-bit rolling string hash (h = h * 31 + code), seeded.

    Wraps to a signed 32-bit integer after every character and returns the
    absolute value, so results are stable across processes and platforms.
    """
    h = seed
    for ch in text:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, replace non-word characters with spaces and collapse whitespace."""
    if not text or not isinstance(text, str):
        return ""
    text = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def extract_ngrams(words: List[str], sizes: Sequence[int] = NGRAM_SIZES) -> List[str]:
    """All word n-grams, grouped by size in the order given."""
    ngrams = []
    for size in sizes:
        for i in range(len(words) - size + 1):
            ngrams.append(" ".join(words[i:i + size]))
    return ngrams


def cosine_similarity(a, b) -> float:
    """
    Cosine similarity between two vectors.

    Raises VectorValidationError on a length mismatch and returns 0.0 when
    either vector has zero norm.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise VectorValidationError(len(a), len(b), context="Similarity")

    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0:
        return 0.0
    return float(np.dot(a, b) / denominator)


class HashNgramEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider.

    Each word n-gram is hashed into three slots of the output vector with
    decreasing weights, and a bag-of-words term-frequency signal is added on
    a fourth hash. Earlier n-grams weigh more. The result is L2-normalized.

    Embeddings are cached by raw input text with FIFO eviction.
    """

    model_name = "simple-hash-embeddings"

    def __init__(self, dimension: int = 128, cache_size: int = 500, logger=None):
        if dimension < 1:
            raise ValueError(f"Embedding dimension must be >= 1: {dimension}")
        self.dimension = dimension
        self.cache_size = cache_size
        self.logger = logger or default_logger
        self._cache: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._lock = threading.Lock()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self, progress_callback: Optional[ProgressCallback] = None) -> None:
        """Prepare the provider. Safe to call more than once."""
        if self._initialized:
            return

        start_time = time.monotonic()
        self._report_progress(progress_callback, 0.1, "Initializing embedding service...")
        self._report_progress(progress_callback, 0.5, "Setting up vector space...")
        self._initialized = True
        self._report_progress(progress_callback, 1.0, "Embedding service ready")

        elapsed_ms = (time.monotonic() - start_time) * 1000
        self.logger.log_operation("embedding.initialize", "success", {
            "model": self.model_name,
            "dimension": self.dimension,
            "elapsed_ms": round(elapsed_ms, 2)
        })

    @staticmethod
    def _report_progress(callback: Optional[ProgressCallback], progress: float, message: str) -> None:
        if callback is not None:
            callback({"progress": progress, "message": message})

    def embed(self, texts: Union[str, Sequence[str]]) -> Union[np.ndarray, List[np.ndarray]]:
        """Embed a single text or a list of texts."""
        if isinstance(texts, str):
            return self.embed_text(texts)
        return [self.embed_text(text) for text in texts]

    def embed_text(self, text: str) -> np.ndarray:
        """Generate the embedding for ``text``, served from cache when possible."""
        if not self._initialized:
            self.initialize()

        key = text if isinstance(text, str) else ""
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            return cached

        vector = self._generate(key)
        vector.setflags(write=False)

        if self.cache_size > 0:
            with self._lock:
                self._cache[key] = vector
                while len(self._cache) > self.cache_size:
                    self._cache.popitem(last=False)
        return vector

    def _generate(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float64)
        words = normalize_text(text).split()
        if not words:
            return vector

        for i, ngram in enumerate(extract_ngrams(words)):
            weight = 1.0 / (1.0 + math.log(i + 1))
            for seed, slot_weight in zip(NGRAM_SEEDS, NGRAM_SLOT_WEIGHTS):
                vector[string_hash(ngram, seed) % self.dimension] += weight * slot_weight

        term_freq: Dict[str, int] = {}
        for word in words:
            term_freq[word] = term_freq.get(word, 0) + 1
        for word, freq in term_freq.items():
            vector[string_hash(word, TERM_SEED) % self.dimension] += math.log(1 + freq)

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension

    def cache_len(self) -> int:
        with self._lock:
            return len(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def get_status(self) -> Dict[str, object]:
        """Return provider status for monitoring."""
        return {
            "initialized": self._initialized,
            "model_name": self.model_name,
            "dimension": self.dimension,
            "cache_size": self.cache_len(),
            "cache_capacity": self.cache_size
        }
