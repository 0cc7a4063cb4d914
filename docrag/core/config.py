"""
Configuration for the retrieval core.
Values come from the environment (optionally a .env file) and are frozen into a Settings object
that is passed to every service at startup.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

VERSION = "1.0.0"

DEFAULT_DB_PATH = "./data/documents.db"


def _get_bool(env: Mapping[str, str], name: str, default: str) -> bool:
    return env.get(name, default).lower() == "true"


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    return int(env.get(name, str(default)))


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    return float(env.get(name, str(default)))


def _get_optional_float(env: Mapping[str, str], name: str) -> Optional[float]:
    raw = env.get(name, "").strip()
    return float(raw) if raw else None


@dataclass(frozen=True)
class Settings:
    """Immutable configuration snapshot shared by all services."""

    db_path: str = DEFAULT_DB_PATH
    debug: bool = False

    # Embedding generator
    embed_dimension: int = 128
    embed_cache_size: int = 500

    # Chunker
    chunk_size: int = 1000
    chunk_overlap: int = 100
    min_chunk_size: int = 50

    # Vector index
    index_num_clusters: int = 16
    index_max_iterations: int = 10
    index_tolerance: float = 0.01
    index_brute_force_threshold: int = 100
    index_clusters_to_search: int = 3
    index_seed: Optional[int] = None

    # Indexing pipeline
    indexer_enabled: bool = True
    indexer_interval_sec: float = 3.0
    indexer_batch_size: int = 5
    indexer_timeout_sec: Optional[float] = None

    # Search
    search_snippet_chars: int = 200

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if env is None else env
        seed = env.get("INDEX_SEED", "").strip()
        return cls(
            db_path=env.get("DB_PATH", DEFAULT_DB_PATH),
            debug=_get_bool(env, "DEBUG", "false"),
            embed_dimension=_get_int(env, "EMBED_DIMENSION", 128),
            embed_cache_size=_get_int(env, "EMBED_CACHE_SIZE", 500),
            chunk_size=_get_int(env, "CHUNK_SIZE", 1000),
            chunk_overlap=_get_int(env, "CHUNK_OVERLAP", 100),
            min_chunk_size=_get_int(env, "MIN_CHUNK_SIZE", 50),
            index_num_clusters=_get_int(env, "INDEX_NUM_CLUSTERS", 16),
            index_max_iterations=_get_int(env, "INDEX_MAX_ITERATIONS", 10),
            index_tolerance=_get_float(env, "INDEX_TOLERANCE", 0.01),
            index_brute_force_threshold=_get_int(env, "INDEX_BRUTE_FORCE_THRESHOLD", 100),
            index_clusters_to_search=_get_int(env, "INDEX_CLUSTERS_TO_SEARCH", 3),
            index_seed=int(seed) if seed else None,
            indexer_enabled=_get_bool(env, "INDEXER_ENABLED", "true"),
            indexer_interval_sec=_get_float(env, "INDEXER_INTERVAL_SEC", 3.0),
            indexer_batch_size=_get_int(env, "INDEXER_BATCH_SIZE", 5),
            indexer_timeout_sec=_get_optional_float(env, "INDEXER_TIMEOUT_SEC"),
            search_snippet_chars=_get_int(env, "SEARCH_SNIPPET_CHARS", 200),
        )

    def with_overrides(self, **changes) -> "Settings":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


def validate_config(settings: Settings) -> List[str]:
    """Validate settings and return any issues."""
    issues = []

    if settings.embed_dimension < 1:
        issues.append("EMBED_DIMENSION must be >= 1")

    if settings.embed_cache_size < 0:
        issues.append("EMBED_CACHE_SIZE must be >= 0")

    if settings.chunk_size < 1:
        issues.append("CHUNK_SIZE must be >= 1")

    if not 0 <= settings.chunk_overlap < settings.chunk_size:
        issues.append("CHUNK_OVERLAP must be >= 0 and smaller than CHUNK_SIZE")

    if settings.min_chunk_size < 0:
        issues.append("MIN_CHUNK_SIZE must be >= 0")

    if settings.index_num_clusters < 1:
        issues.append("INDEX_NUM_CLUSTERS must be >= 1")

    if settings.index_max_iterations < 1:
        issues.append("INDEX_MAX_ITERATIONS must be >= 1")

    if settings.index_clusters_to_search < 1:
        issues.append("INDEX_CLUSTERS_TO_SEARCH must be >= 1")

    if settings.indexer_interval_sec <= 0:
        issues.append("INDEXER_INTERVAL_SEC must be > 0")

    if settings.indexer_batch_size < 1:
        issues.append("INDEXER_BATCH_SIZE must be >= 1")

    if settings.indexer_timeout_sec is not None and settings.indexer_timeout_sec <= 0:
        issues.append("INDEXER_TIMEOUT_SEC must be > 0 when set")

    return issues


def ensure_db_directory(db_path: str) -> None:
    """Ensure the database directory exists."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
