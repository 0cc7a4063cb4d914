"""
Record types shared by the embedding generator, chunker and vector index.
"""

from typing import Dict, Optional
import numpy as np
from dataclasses import dataclass, field


@dataclass
class VectorRecord:
    """Represents a vector record with metadata."""

    id: str
    """Unique identifier for the vector record"""

    vector: np.ndarray
    """The vector representation of the content"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Additional metadata associated with the vector"""

    norm: Optional[float] = None
    """Euclidean norm of the vector, filled in by the index on add"""


@dataclass
class QueryResult:
    """Represents a search result from the vector index."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Cosine similarity of the match (-1 to 1)"""

    metadata: Dict[str, object]
    """Metadata associated with the matched record"""


@dataclass(frozen=True)
class TextChunk:
    """A contiguous span of a document's text, embedded independently."""

    text: str
    index: int
    start_pos: int
    end_pos: int
