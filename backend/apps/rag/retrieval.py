"""
Retrieval service for RAG queries.

Embeds the question, asks the chunk store for the nearest chunks by cosine
distance (scoped to the requesting user and an optional document allow-list),
and returns them ranked by similarity.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from django.db import DataError, DatabaseError, connection

from apps.rag.config import RagConfig
from apps.rag.embeddings import BaseEmbeddingProvider
from apps.rag.errors import (
    STAGE_EMBEDDING,
    STAGE_RETRIEVAL,
    DimensionMismatchError,
    RetrievalError,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 6

# Rows fetched past top_k; ties at the cut-off are settled by ranking_key
TIE_CANDIDATES = 4


@dataclass(frozen=True)
class ChunkMatch:
    """A raw row from the similarity query, ordered by ascending distance."""
    chunk_id: str
    document_id: str
    document_title: str
    chunk_index: int
    content: str
    page: Optional[int]
    distance: float


@dataclass(frozen=True)
class RetrievedChunk:
    """A retrieved chunk with its document title and similarity score."""
    chunk_id: str
    document_id: str
    document_title: str
    chunk_index: int
    content: str
    page: Optional[int]
    similarity: float  # 1 - cosine distance

    @classmethod
    def from_match(cls, match: ChunkMatch) -> "RetrievedChunk":
        return cls(
            chunk_id=match.chunk_id,
            document_id=match.document_id,
            document_title=match.document_title,
            chunk_index=match.chunk_index,
            content=match.content,
            page=match.page,
            similarity=1.0 - float(match.distance),
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.chunk_id,
            "documentId": self.document_id,
            "documentTitle": self.document_title,
            "chunkIndex": self.chunk_index,
            "content": self.content,
            "page": self.page,
            "similarity": round(self.similarity, 4),
        }


def ranking_key(chunk: RetrievedChunk):
    """Similarity descending, then chunk index and document id ascending."""
    return (-chunk.similarity, chunk.chunk_index, chunk.document_id)


class ChunkStore(ABC):
    """Storage for chunk rows and their embedding vectors."""

    @abstractmethod
    def similarity_search(
        self,
        query_embedding: List[float],
        owner_user_id: str,
        document_ids: Optional[Sequence[str]],
        limit: int,
    ) -> List[ChunkMatch]:
        """
        Return up to `limit` chunks nearest to the query vector.

        Only chunks of documents owned by owner_user_id are considered; a
        non-empty document_ids further restricts the search to those documents.
        Rows come back ordered by ascending cosine distance.
        """
        pass

    @abstractmethod
    def add_chunks(self, document, chunks, embeddings: List[List[float]]) -> int:
        """Bulk-insert chunks with their vectors; returns the number stored."""
        pass


def _vector_literal(embedding: List[float]) -> str:
    return '[' + ','.join(str(float(x)) for x in embedding) + ']'


class PgVectorChunkStore(ChunkStore):
    """
    Chunk store backed by PostgreSQL + pgvector.

    Uses pgvector's cosine distance operator (<=>) to find nearest neighbors.
    Joining on documents means a chunk whose document is gone can never be
    returned.
    """

    def similarity_search(
        self,
        query_embedding: List[float],
        owner_user_id: str,
        document_ids: Optional[Sequence[str]],
        limit: int,
    ) -> List[ChunkMatch]:
        embedding_str = _vector_literal(query_embedding)

        sql = """
            SELECT
                c.id AS chunk_id,
                c.document_id,
                c.chunk_index,
                c.content,
                c.page,
                d.title AS document_title,
                c.embedding <=> %s::vector AS distance
            FROM doc_chunks c
            INNER JOIN documents d ON c.document_id = d.id
            WHERE d.owner_user_id = %s
        """
        params: list = [embedding_str, owner_user_id]

        if document_ids:
            placeholders = ', '.join(['%s'] * len(document_ids))
            sql += f" AND c.document_id IN ({placeholders})"
            params.extend(str(doc_id) for doc_id in document_ids)

        sql += """
            ORDER BY c.embedding <=> %s::vector
            LIMIT %s
        """
        params.extend([embedding_str, limit])

        try:
            with connection.cursor() as cursor:
                cursor.execute(sql, params)
                rows = cursor.fetchall()
        except DataError as e:
            # pgvector rejects comparisons between vectors of different sizes
            if 'dimensions' in str(e):
                raise DimensionMismatchError(
                    f"Query vector has {len(query_embedding)} dimensions but stored "
                    f"chunks differ: {e}",
                    stage=STAGE_RETRIEVAL,
                )
            raise RetrievalError(f"Vector search failed: {e}")
        except DatabaseError as e:
            logger.error(f"Vector search failed: {e}")
            raise RetrievalError(f"Vector search failed: {e}")

        return [
            ChunkMatch(
                chunk_id=str(chunk_id),
                document_id=str(doc_id),
                document_title=doc_title,
                chunk_index=chunk_index,
                content=content,
                page=page,
                distance=float(distance),
            )
            for chunk_id, doc_id, chunk_index, content, page, doc_title, distance in rows
        ]

    def add_chunks(self, document, chunks, embeddings: List[List[float]]) -> int:
        from apps.indexing.models import DocumentChunk

        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Got {len(embeddings)} embeddings for {len(chunks)} chunks"
            )

        rows = [
            DocumentChunk(
                document=document,
                chunk_index=chunk.index,
                content=chunk.content,
                token_start=chunk.token_start,
                token_end=chunk.token_end,
                page=chunk.page,
                embedding=embedding,
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]
        try:
            DocumentChunk.objects.bulk_create(rows)
        except DataError as e:
            # The vector column has a fixed size set by the migration
            if 'dimensions' in str(e):
                raise DimensionMismatchError(
                    f"Chunk vectors have {len(embeddings[0])} dimensions but the "
                    f"embedding column differs: {e}",
                    stage=STAGE_EMBEDDING,
                )
            raise RetrievalError(f"Storing chunks failed: {e}")
        except DatabaseError as e:
            logger.error(f"Storing chunks for document {document.id} failed: {e}")
            raise RetrievalError(f"Storing chunks failed: {e}")
        logger.info(f"Stored {len(rows)} chunks for document {document.id}")
        return len(rows)


class Retriever:
    """Embeds a query and returns the top-k chunks ranked by similarity."""

    def __init__(
        self,
        embedder: BaseEmbeddingProvider,
        store: ChunkStore,
        config: RagConfig,
    ):
        self.embedder = embedder
        self.store = store
        self.top_k = config.top_k or DEFAULT_TOP_K
        self.default_owner = config.demo_user_id

    def retrieve(
        self,
        query_text: str,
        document_ids: Optional[Sequence[str]] = None,
        owner_user_id: Optional[str] = None,
    ) -> List[RetrievedChunk]:
        """
        Retrieve the chunks most similar to a question.

        Args:
            query_text: The user's question (normalized)
            document_ids: Optional allow-list; empty or None searches all of
                the owner's documents
            owner_user_id: Requesting identity (defaults to the demo user)

        Returns:
            Up to top_k RetrievedChunk objects; empty if nothing matches
        """
        owner = owner_user_id or self.default_owner

        # Embedding errors propagate unchanged
        query_embedding = self.embedder.embed(query_text)

        matches = self.store.similarity_search(
            query_embedding=query_embedding,
            owner_user_id=owner,
            document_ids=list(document_ids) if document_ids else None,
            limit=self.top_k + TIE_CANDIDATES,
        )

        chunks = sorted(
            (RetrievedChunk.from_match(match) for match in matches),
            key=ranking_key,
        )[:self.top_k]

        logger.info(
            f"Retrieved {len(chunks)} chunks for user {owner} "
            f"(top_k={self.top_k}, filtered={bool(document_ids)})"
        )

        return chunks
