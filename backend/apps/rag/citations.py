"""
Citation extraction from generated answers.

Markers look like [Document: Title, Chunk: N, Page: X]. Each marker is checked
against the chunks retrieved for this request; markers pointing anywhere else
are dropped.
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from apps.rag.retrieval import RetrievedChunk

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 150
# Appended even when the content is shorter than SNIPPET_LENGTH
SNIPPET_SUFFIX = "..."

CITATION_PATTERN = re.compile(
    r'\[Document:\s*([^,\]]+),\s*Chunk:\s*(\d+)(?:,\s*Page:\s*(\d+))?\s*\]',
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Citation:
    """A citation referencing a specific retrieved chunk."""
    document_title: str
    chunk_index: int
    page: Optional[int]
    snippet: str

    @classmethod
    def from_chunk(cls, chunk: RetrievedChunk) -> "Citation":
        return cls(
            document_title=chunk.document_title,
            chunk_index=chunk.chunk_index,
            page=chunk.page,
            snippet=make_snippet(chunk.content),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "documentTitle": self.document_title,
            "chunkIndex": self.chunk_index,
            "page": self.page,
            "snippet": self.snippet,
        }


def make_snippet(content: str) -> str:
    return content[:SNIPPET_LENGTH] + SNIPPET_SUFFIX


def find_markers(answer: str) -> List[Tuple[str, int, Optional[int]]]:
    """Return (title, chunk_index, page) for every marker, in order of appearance."""
    markers = []
    for match in CITATION_PATTERN.finditer(answer):
        title, index, page = match.groups()
        markers.append((title.strip(), int(index), int(page) if page else None))
    return markers


def extract_citations(answer: str, chunks: List[RetrievedChunk]) -> List[Citation]:
    """
    Resolve the answer's citation markers against the retrieved chunks.

    Markers are matched on (document title, chunk index) only. The cited page
    is always the resolved chunk's stored page; a page written in the marker
    is parsed but ignored.

    Args:
        answer: Generated answer text
        chunks: Chunks retrieved for this request, in retrieval order

    Returns:
        Citations in order of first appearance. If no marker resolves, one
        citation per retrieved chunk in retrieval order.
    """
    by_key: Dict[Tuple[str, int], RetrievedChunk] = {}
    for chunk in chunks:
        by_key.setdefault((chunk.document_title, chunk.chunk_index), chunk)

    citations = []
    seen = set()
    dropped = 0

    for title, index, _page in find_markers(answer or ""):
        key = (title, index)
        chunk = by_key.get(key)
        if chunk is None:
            dropped += 1
            continue
        if key in seen:
            continue
        seen.add(key)
        citations.append(Citation.from_chunk(chunk))

    if dropped:
        logger.info(f"Dropped {dropped} citation markers not matching retrieved chunks")

    if not citations and chunks:
        logger.debug("No citation markers resolved, citing all retrieved chunks")
        return [Citation.from_chunk(chunk) for chunk in chunks]

    return citations
