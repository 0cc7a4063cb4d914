"""
Error taxonomy for the retrieval core.
Library calls raise these directly; the indexing pipeline turns per-document failures into status updates.
"""

from typing import Optional


class RetrievalError(Exception):
    """Base class for all retrieval core errors."""


class VectorValidationError(RetrievalError, ValueError):
    """A vector does not match the configured dimension."""

    def __init__(self, expected: int, actual: int, context: str = "Vector"):
        self.expected = expected
        self.actual = actual
        super().__init__(f"{context} dimension mismatch: expected {expected}, got {actual}")


class DocumentProcessingError(RetrievalError):
    """Chunking, embedding or index insertion failed for one document."""

    def __init__(self, document_id: Optional[str], message: str):
        self.document_id = document_id
        super().__init__(message)


class DocumentNotFoundError(RetrievalError, KeyError):
    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")

    def __str__(self):
        return self.args[0]


class ConfigurationError(RetrievalError, ValueError):
    """Settings failed validation."""

    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__(f"Configuration invalid: {self.issues}")
