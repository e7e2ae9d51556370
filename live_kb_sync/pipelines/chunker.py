"""Split long text into overlapping fixed-size windows for passage-level retrieval."""

from typing import List

from .normalize import clean_block


def chunk_text(text: str, chunk_size: int = 1200, overlap: int = 150) -> List[str]:
    """Split ``text`` into windows of ``chunk_size`` characters.

    Consecutive windows share ``overlap`` characters. The last window ends at
    the end of the text; whitespace-only input yields no chunks.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be between 0 and chunk_size - 1")

    content = clean_block(text)
    if not content:
        return []

    chunks = []
    start = 0
    while start < len(content):
        end = min(len(content), start + chunk_size)
        chunks.append(content[start:end])
        if end == len(content):
            break
        # Move start position with overlap
        start = end - overlap

    return chunks
