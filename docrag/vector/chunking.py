"""
Boundary-aware text chunking.
Splits document text into overlapping spans sized for independent embedding.
"""

from typing import Iterator, List

from .types import TextChunk

# A snapped chunk must keep at least this share of the window.
BOUNDARY_MIN_RATIO = 0.7


def iter_chunks(text: str, chunk_size: int = 1000, overlap: int = 100,
                min_chunk_size: int = 50) -> Iterator[TextChunk]:
    """
    Yield overlapping chunks of ``text``.

    A window of ``chunk_size`` characters is pulled back to the last sentence
    end, paragraph break or space when that boundary lies past 70% of the
    window. Consecutive windows overlap by ``overlap`` characters. Chunks whose
    stripped text is shorter than ``min_chunk_size`` are dropped.

    Args:
        text: Raw document text
        chunk_size: Maximum window length in characters
        overlap: Characters shared by consecutive windows
        min_chunk_size: Minimum stripped length of an emitted chunk

    Yields:
        TextChunk objects in document order
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1: {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(f"overlap must be >= 0 and smaller than chunk_size: {overlap}")

    text = text or ""
    if len(text) < min_chunk_size:
        yield TextChunk(text=text, index=0, start_pos=0, end_pos=len(text))
        return

    emitted = 0
    position = 0
    while position < len(text):
        end_pos = min(position + chunk_size, len(text))
        window = text[position:end_pos]

        if end_pos < len(text):
            boundary = max(window.rfind("."), window.rfind("\n\n"), window.rfind(" "))
            if boundary > chunk_size * BOUNDARY_MIN_RATIO:
                window = window[:boundary + 1]

        stripped = window.strip()
        if len(stripped) >= min_chunk_size:
            yield TextChunk(
                text=stripped,
                index=emitted,
                start_pos=position,
                end_pos=position + len(window),
            )
            emitted += 1

        if end_pos >= len(text):
            break

        position += max(len(window) - overlap, 1)

    if emitted == 0:
        yield TextChunk(text=text, index=0, start_pos=0, end_pos=len(text))


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 100,
               min_chunk_size: int = 50) -> List[TextChunk]:
    """Return all chunks of ``text`` as a list."""
    return list(iter_chunks(text, chunk_size=chunk_size, overlap=overlap,
                            min_chunk_size=min_chunk_size))
