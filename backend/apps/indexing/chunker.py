"""
Deterministic token-aware text chunking for document indexing.

Chunking is designed to be:
- Deterministic: Same input always produces same chunks
- Token-bounded: Windows are measured in tokenizer tokens, not characters
- Overlap-aware: Consecutive windows share a configurable number of tokens

The tokenizer only has to produce consistent window boundaries; it does not
need to match the generation model.
"""
import logging
import math
from dataclasses import dataclass, replace
from typing import List, Optional

import tiktoken

logger = logging.getLogger(__name__)

# Default chunking parameters
DEFAULT_CHUNK_SIZE = 800  # tokens
DEFAULT_OVERLAP = 150  # tokens shared between consecutive chunks

# Fixed, versioned encoding so window boundaries never change between runs
DEFAULT_ENCODING = "cl100k_base"


@dataclass(frozen=True)
class TextChunk:
    """A token window of a document with its sequence index."""
    index: int
    content: str
    token_start: int
    token_end: int  # exclusive
    page: Optional[int] = None

    @property
    def token_count(self) -> int:
        return self.token_end - self.token_start


class TokenChunker:
    """
    Split text into overlapping token windows.

    Each window starts chunk_size - overlap tokens after the previous one. If
    overlap >= chunk_size the window could never advance, so exactly one chunk
    is produced instead.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
        encoding_name: str = DEFAULT_ENCODING,
        encoding=None,
    ):
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0:
            raise ValueError(f"overlap cannot be negative, got {overlap}")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.encoding_name = encoding_name
        # Any object with tiktoken's encode/decode signature works
        self._encoding = encoding or tiktoken.get_encoding(encoding_name)

    @classmethod
    def from_config(cls, config) -> "TokenChunker":
        return cls(chunk_size=config.chunk_size_tokens, overlap=config.overlap_tokens)

    def encode(self, text: str) -> List[int]:
        # Special-token text inside documents is treated as plain text
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: List[int]) -> str:
        return self._encoding.decode(tokens)

    def chunk(self, text: str) -> List[TextChunk]:
        """
        Split text into token windows.

        Args:
            text: Raw extracted document text

        Returns:
            List of TextChunk objects, indices 0..n-1 in emission order
        """
        tokens = self.encode(text)
        total = len(tokens)

        if total == 0:
            logger.warning("Empty text provided for chunking")
            return []

        step = self.chunk_size - self.overlap
        chunks = []
        token_start = 0

        while token_start < total:
            token_end = min(token_start + self.chunk_size, total)
            content = self.decode(tokens[token_start:token_end]).strip()

            chunks.append(TextChunk(
                index=len(chunks),
                content=content,
                token_start=token_start,
                token_end=token_end,
            ))

            if step <= 0:
                logger.warning(
                    f"overlap ({self.overlap}) >= chunk_size ({self.chunk_size}), "
                    f"emitting a single chunk"
                )
                break

            token_start += step

        logger.info(f"Created {len(chunks)} chunks from {total} tokens")

        return chunks


def interpolate_page(token_start: int, total_tokens: int, total_pages: int) -> int:
    """
    Approximate the page a token offset falls on.

    This is a linear interpolation over the token stream; PDF layout is not
    inspected, so the result can be off by a page for uneven documents.
    """
    ratio = token_start / total_tokens
    page = math.ceil(ratio * total_pages)
    return min(max(1, page), total_pages)


def assign_pages(
    chunks: List[TextChunk],
    total_pages: Optional[int],
    total_tokens: Optional[int] = None,
) -> List[TextChunk]:
    """
    Attach approximate page numbers to chunks.

    Args:
        chunks: Chunks from TokenChunker.chunk
        total_pages: Page count of the source document, None if unknown
        total_tokens: Token count of the document (defaults to the last chunk's end)

    Returns:
        New list of chunks; unchanged if the page count is unknown
    """
    if not chunks or not total_pages:
        return list(chunks)

    if total_tokens is None:
        total_tokens = chunks[-1].token_end
    if total_tokens <= 0:
        return list(chunks)

    return [
        replace(chunk, page=interpolate_page(chunk.token_start, total_tokens, total_pages))
        for chunk in chunks
    ]
