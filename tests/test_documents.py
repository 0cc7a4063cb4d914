"""
SQLite document store tests.
"""

from datetime import datetime

import pytest

from docrag.core.db import get_db, health_check, init_db
from docrag.core.documents import DocumentStatus, DocumentStore
from docrag.core.errors import DocumentNotFoundError


@pytest.fixture
def doc_store(tmp_path):
    return DocumentStore(str(tmp_path / "nested" / "documents.db"))


def test_database_health(tmp_path):
    """Test that database initializes correctly."""
    db_path = str(tmp_path / "health.db")
    assert health_check(db_path) is False

    init_db(db_path)

    assert health_check(db_path) is True


def test_init_db_is_idempotent(doc_store):
    init_db(doc_store.db_path)
    with get_db(doc_store.db_path) as conn:
        names = {row["name"] for row in conn.execute("SELECT name FROM sqlite_master")}
    assert "documents" in names
    assert "idx_documents_status_indexed" in names


def test_create_and_get_document(doc_store):
    document = doc_store.create_document("  Guide ", "Body text", filename="guide.txt")

    fetched = doc_store.get_document(document.id)
    assert fetched.title == "Guide"
    assert fetched.content == "Body text"
    assert fetched.filename == "guide.txt"
    assert fetched.content_type == "text/plain"
    assert fetched.status == DocumentStatus.PENDING
    assert fetched.indexed is False
    assert fetched.indexed_at is None
    assert isinstance(fetched.created_at, datetime)


def test_create_with_explicit_id(doc_store):
    document = doc_store.create_document("Title", "x", document_id="doc-1")
    assert document.id == "doc-1"


def test_create_rejects_empty_title(doc_store):
    with pytest.raises(ValueError, match="title cannot be empty"):
        doc_store.create_document("   ", "content")


def test_get_missing_document_raises(doc_store):
    with pytest.raises(DocumentNotFoundError, match="Document not found: nope"):
        doc_store.get_document("nope")

    # Callers treating the store like a mapping can catch KeyError
    with pytest.raises(KeyError):
        doc_store.get_document("nope")


def test_update_document_fields(doc_store):
    document = doc_store.create_document("Title", "content")
    now = datetime.now()

    doc_store.update_document(document.id, status=DocumentStatus.COMPLETED, indexed=True, indexed_at=now)

    updated = doc_store.get_document(document.id)
    assert updated.status == DocumentStatus.COMPLETED
    assert updated.indexed is True
    assert updated.indexed_at == now
    assert updated.updated_at >= document.updated_at


def test_update_accepts_status_strings(doc_store):
    document = doc_store.create_document("Title", "content")

    doc_store.update_document(document.id, status="error", error="bad input")

    updated = doc_store.get_document(document.id)
    assert updated.status == DocumentStatus.ERROR
    assert updated.error == "bad input"


def test_update_rejects_unknown_fields(doc_store):
    document = doc_store.create_document("Title", "content")

    with pytest.raises(ValueError, match="Cannot update fields"):
        doc_store.update_document(document.id, created_at="yesterday")


def test_update_missing_document_raises(doc_store):
    with pytest.raises(DocumentNotFoundError):
        doc_store.update_document("missing", status=DocumentStatus.PROCESSING)


def test_find_documents_filters_and_orders(doc_store):
    first = doc_store.create_document("First", "a")
    second = doc_store.create_document("Second", "b")
    third = doc_store.create_document("Third", "c")
    doc_store.update_document(second.id, status=DocumentStatus.COMPLETED, indexed=True)

    pending = doc_store.find_documents(status=DocumentStatus.PENDING, indexed=False)
    assert [d.id for d in pending] == [first.id, third.id]

    assert [d.id for d in doc_store.find_documents(indexed=True)] == [second.id]
    assert [d.id for d in doc_store.find_documents(limit=2)] == [first.id, second.id]
    assert len(doc_store.list_documents()) == 3


def test_bulk_update_with_status_filter(doc_store):
    stuck = doc_store.create_document("Stuck", "a")
    done = doc_store.create_document("Done", "b")
    doc_store.update_document(stuck.id, status=DocumentStatus.PROCESSING)
    doc_store.update_document(done.id, status=DocumentStatus.COMPLETED, indexed=True)

    count = doc_store.bulk_update({"status": DocumentStatus.PENDING, "indexed": False},
                                  status=DocumentStatus.PROCESSING)

    assert count == 1
    assert doc_store.get_document(stuck.id).status == DocumentStatus.PENDING
    assert doc_store.get_document(done.id).status == DocumentStatus.COMPLETED

    assert doc_store.bulk_update({"indexed": False}) == 2


def test_delete_document(doc_store):
    document = doc_store.create_document("Title", "content")

    doc_store.delete_document(document.id)

    with pytest.raises(DocumentNotFoundError):
        doc_store.get_document(document.id)
    with pytest.raises(DocumentNotFoundError):
        doc_store.delete_document(document.id)


def test_count_documents(doc_store):
    a = doc_store.create_document("A", "a")
    doc_store.create_document("B", "b")
    doc_store.update_document(a.id, status=DocumentStatus.COMPLETED, indexed=True)

    counts = doc_store.count_documents()

    assert counts["total"] == 2
    assert counts["indexed"] == 1
    assert counts["pending"] == 1
    assert counts["completed"] == 1
    assert counts["processing"] == 0
    assert counts["error"] == 0
