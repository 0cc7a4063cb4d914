"""
SQLite-backed document store.
Owns document records; the indexing pipeline only reads them and writes the status fields.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .db import get_db, init_db
from .errors import DocumentNotFoundError


class DocumentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class Document:
    """A document record as held by the store."""
    id: str
    title: str
    content: str
    filename: Optional[str]
    content_type: str
    status: DocumentStatus
    indexed: bool
    indexed_at: Optional[datetime]
    error: Optional[str]
    created_at: datetime
    updated_at: datetime


# Columns callers may change through update_document
UPDATABLE_FIELDS = {"title", "content", "filename", "content_type", "status", "indexed", "indexed_at", "error"}


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_column(name: str, value: Any) -> Any:
    if name == "status":
        return DocumentStatus(value).value
    if name == "indexed":
        return bool(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class DocumentStore:
    """Document persistence over a single SQLite file."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        init_db(db_path)

    @staticmethod
    def _row_to_document(row) -> Document:
        return Document(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            filename=row["filename"],
            content_type=row["content_type"],
            status=DocumentStatus(row["status"]),
            indexed=bool(row["indexed"]),
            indexed_at=_parse_ts(row["indexed_at"]),
            error=row["error"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"])
        )

    def create_document(self, title: str, content: str, filename: Optional[str] = None,
                        content_type: str = "text/plain", document_id: Optional[str] = None) -> Document:
        """Insert a new document in ``pending`` state."""
        if not title or not title.strip():
            raise ValueError("title cannot be empty")

        document_id = document_id or uuid.uuid4().hex
        now = datetime.now().isoformat()
        with get_db(self.db_path) as conn:
            conn.execute(
                "INSERT INTO documents (id, title, content, filename, content_type, status, indexed, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (document_id, title.strip(), content or "", filename, content_type,
                 DocumentStatus.PENDING.value, False, now, now)
            )
            conn.commit()
        return self.get_document(document_id)

    def get_document(self, document_id: str) -> Document:
        """Fetch one document. Raises DocumentNotFoundError if it does not exist."""
        with get_db(self.db_path) as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        return self._row_to_document(row)

    def find_documents(self, status: Optional[DocumentStatus] = None, indexed: Optional[bool] = None,
                       limit: Optional[int] = None) -> List[Document]:
        """
        Find documents matching the filter, oldest first.

        Args:
            status: Only documents in this status
            indexed: Only documents with this indexed flag
            limit: Maximum number of documents to return

        Returns:
            Matching Document records
        """
        query = "SELECT * FROM documents"
        clauses = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = ?")
            params.append(DocumentStatus(status).value)
        if indexed is not None:
            clauses.append("indexed = ?")
            params.append(bool(indexed))
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at, rowid"
        if limit is not None:
            query += " LIMIT ?"
            params.append(int(limit))

        with get_db(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_document(row) for row in rows]

    def list_documents(self, limit: Optional[int] = None) -> List[Document]:
        return self.find_documents(limit=limit)

    def update_document(self, document_id: str, **fields) -> None:
        """Update the given fields of a document."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")
        if not fields:
            return

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_column(name, value) for name, value in fields.items()]
        params.extend([datetime.now().isoformat(), document_id])

        with get_db(self.db_path) as conn:
            cursor = conn.execute(
                f"UPDATE documents SET {assignments}, updated_at = ? WHERE id = ?",
                params
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(document_id)

    def bulk_update(self, fields: Dict[str, Any], status: Optional[DocumentStatus] = None) -> int:
        """Update every document (optionally only those in ``status``). Returns the row count."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params = [_to_column(name, value) for name, value in fields.items()]
        params.append(datetime.now().isoformat())
        query = f"UPDATE documents SET {assignments}, updated_at = ?"
        if status is not None:
            query += " WHERE status = ?"
            params.append(DocumentStatus(status).value)

        with get_db(self.db_path) as conn:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor.rowcount

    def delete_document(self, document_id: str) -> None:
        with get_db(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM documents WHERE id = ?", (document_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(document_id)

    def count_documents(self) -> Dict[str, int]:
        """Document counts by status plus total and indexed counts."""
        counts = {status.value: 0 for status in DocumentStatus}
        with get_db(self.db_path) as conn:
            for row in conn.execute("SELECT status, COUNT(*) AS n FROM documents GROUP BY status"):
                counts[row["status"]] = row["n"]
            indexed = conn.execute("SELECT COUNT(*) FROM documents WHERE indexed = 1").fetchone()[0]
        counts["total"] = sum(counts[status.value] for status in DocumentStatus)
        counts["indexed"] = indexed
        return counts
