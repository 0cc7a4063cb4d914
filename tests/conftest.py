"""
Pytest fixtures for the retrieval core tests.
"""

import pytest

from docrag.core.config import Settings
from docrag.core.container import build_services


@pytest.fixture
def settings(tmp_path):
    """Settings on a throwaway database with a pinned clustering seed."""
    return Settings(
        db_path=str(tmp_path / "documents.db"),
        index_seed=42,
        indexer_interval_sec=0.1
    )


@pytest.fixture
def services(settings):
    """Fully wired services; the pipeline is stopped on teardown."""
    svc = build_services(settings)
    yield svc
    svc.pipeline.stop()


@pytest.fixture
def store(services):
    return services.document_store


@pytest.fixture
def rag(services):
    return services.rag_service


@pytest.fixture
def pipeline(services):
    return services.pipeline
