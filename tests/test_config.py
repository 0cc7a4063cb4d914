"""
Configuration loading and validation tests.
"""

import logging

import pytest

from docrag.core.config import DEFAULT_DB_PATH, Settings, validate_config
from docrag.core.container import build_services
from docrag.core.errors import ConfigurationError
from docrag.util.logging import StructuredLogger


def test_defaults():
    settings = Settings.from_env({})

    assert settings.db_path == DEFAULT_DB_PATH
    assert settings.embed_dimension == 128
    assert settings.embed_cache_size == 500
    assert (settings.chunk_size, settings.chunk_overlap, settings.min_chunk_size) == (1000, 100, 50)
    assert settings.index_num_clusters == 16
    assert settings.index_brute_force_threshold == 100
    assert settings.index_clusters_to_search == 3
    assert settings.index_seed is None
    assert settings.indexer_enabled is True
    assert settings.indexer_interval_sec == 3.0
    assert settings.indexer_batch_size == 5
    assert settings.indexer_timeout_sec is None
    assert validate_config(settings) == []


def test_from_env_overrides():
    settings = Settings.from_env({
        "DB_PATH": "/tmp/docs.db",
        "DEBUG": "TRUE",
        "EMBED_DIMENSION": "256",
        "INDEX_SEED": "7",
        "INDEXER_ENABLED": "false",
        "INDEXER_INTERVAL_SEC": "0.5",
        "INDEXER_TIMEOUT_SEC": "30",
    })

    assert settings.db_path == "/tmp/docs.db"
    assert settings.debug is True
    assert settings.embed_dimension == 256
    assert settings.index_seed == 7
    assert settings.indexer_enabled is False
    assert settings.indexer_interval_sec == 0.5
    assert settings.indexer_timeout_sec == 30.0


def test_settings_are_frozen():
    settings = Settings()

    with pytest.raises(AttributeError):
        settings.chunk_size = 10

    assert settings.with_overrides(chunk_size=10).chunk_size == 10
    assert settings.chunk_size == 1000


@pytest.mark.parametrize("changes,message", [
    ({"embed_dimension": 0}, "EMBED_DIMENSION"),
    ({"chunk_overlap": 1000}, "CHUNK_OVERLAP"),
    ({"chunk_overlap": -1}, "CHUNK_OVERLAP"),
    ({"index_num_clusters": 0}, "INDEX_NUM_CLUSTERS"),
    ({"indexer_interval_sec": 0}, "INDEXER_INTERVAL_SEC"),
    ({"indexer_batch_size": 0}, "INDEXER_BATCH_SIZE"),
    ({"indexer_timeout_sec": -5.0}, "INDEXER_TIMEOUT_SEC"),
])
def test_validate_config_reports_issues(changes, message):
    issues = validate_config(Settings().with_overrides(**changes))

    assert len(issues) == 1
    assert message in issues[0]


def test_build_services_rejects_invalid_settings(tmp_path):
    settings = Settings(db_path=str(tmp_path / "docs.db"), indexer_batch_size=0)

    with pytest.raises(ConfigurationError) as exc_info:
        build_services(settings)

    assert exc_info.value.issues == ["INDEXER_BATCH_SIZE must be >= 1"]


def test_build_services_wires_dimension(tmp_path):
    services = build_services(Settings(db_path=str(tmp_path / "docs.db"), embed_dimension=64))

    assert services.embedding_provider.get_dimension() == 64
    assert services.vector_index.dimension == 64
    assert services.rag_service.vector_index is services.vector_index
    assert services.pipeline.rag_service is services.rag_service


def test_debug_setting_lowers_log_level(tmp_path):
    logger = StructuredLogger("docrag.debug_test")
    logger.set_level(logging.INFO)

    build_services(Settings(db_path=str(tmp_path / "docs.db"), debug=True), logger=logger)

    assert logger.logger.level == logging.DEBUG


def test_debug_off_keeps_log_level(tmp_path):
    logger = StructuredLogger("docrag.info_test")

    build_services(Settings(db_path=str(tmp_path / "docs.db")), logger=logger)

    assert logger.logger.level == logging.INFO
