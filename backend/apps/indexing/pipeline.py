"""
Indexing pipeline - turns an uploaded file into stored, embedded chunks.

Stages:
1. EXTRACT: Extract text (and page count for PDFs)
2. CHUNK: Split text into overlapping token windows
3. EMBED: Generate embeddings for every chunk, in order
4. STORE: Bulk-insert chunks with vectors and approximate pages
"""
import logging
from pathlib import Path
from typing import Optional

from apps.indexing.chunker import TokenChunker, assign_pages
from apps.indexing.extractor import extract_text
from apps.rag.config import RagConfig
from apps.rag.embeddings import BaseEmbeddingProvider, get_embedding_provider
from apps.rag.retrieval import ChunkStore, PgVectorChunkStore

logger = logging.getLogger(__name__)


class IndexingPipeline:
    """Extracts, chunks, embeds and stores one document at a time."""

    def __init__(
        self,
        config: RagConfig,
        embedder: Optional[BaseEmbeddingProvider] = None,
        store: Optional[ChunkStore] = None,
        chunker: Optional[TokenChunker] = None,
    ):
        self.config = config
        self.embedder = embedder or get_embedding_provider(config)
        self.store = store or PgVectorChunkStore()
        self.chunker = chunker or TokenChunker.from_config(config)

    def index_document(self, document, file_path: Path) -> int:
        """
        Index a stored document file.

        Args:
            document: The Document row the chunks belong to
            file_path: Full path of the stored file

        Returns:
            Number of chunks stored

        Raises:
            ExtractionError: File unreadable or unsupported
            RagError: Embedding failed
        """
        doc_id = str(document.id)

        # Stage 1: EXTRACT
        extracted = extract_text(file_path, document.mime_type)

        # Stage 2: CHUNK
        chunks = self.chunker.chunk(extracted.text)
        if not chunks:
            logger.warning(f"Document {doc_id} produced no chunks")
            return 0

        # Pages are interpolated over the token stream, not read from layout
        chunks = assign_pages(chunks, extracted.pages, total_tokens=chunks[-1].token_end)

        # Stage 3: EMBED
        embeddings = self.embedder.embed_batch([chunk.content for chunk in chunks])

        # Stage 4: STORE
        stored = self.store.add_chunks(document, chunks, embeddings)

        logger.info(
            f"Indexed document {doc_id} ({document.title}): {stored} chunks, "
            f"pages={extracted.pages}"
        )
        return stored


def index_document(document, file_path: Path, config: Optional[RagConfig] = None) -> int:
    """Index one document with the configured backends."""
    pipeline = IndexingPipeline(config or RagConfig.from_settings())
    return pipeline.index_document(document, file_path)
