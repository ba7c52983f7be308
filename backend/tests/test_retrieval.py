"""
Tests for the retriever and the pgvector chunk store.

The retriever runs against an in-memory store; the pgvector store is checked
against a mocked database cursor.
"""
import pytest
from unittest.mock import MagicMock, patch

from django.db import DatabaseError, DataError

from apps.rag.config import RagConfig
from apps.rag.errors import DimensionMismatchError, ProviderUnavailable, RetrievalError
from apps.rag.retrieval import (
    ChunkMatch,
    ChunkStore,
    PgVectorChunkStore,
    RetrievedChunk,
    TIE_CANDIDATES,
    Retriever,
)


class FakeEmbedder:
    """Returns a fixed vector and records queries."""

    def __init__(self, vector=None, error=None):
        self.vector = vector or [1.0, 0.0, 0.0]
        self.error = error
        self.queries = []

    def embed(self, text):
        self.queries.append(text)
        if self.error:
            raise self.error
        return self.vector


class InMemoryChunkStore(ChunkStore):
    """Serves canned matches, honoring owner, filter and limit."""

    def __init__(self, matches=None, owners=None):
        self.matches = matches or []
        self.owners = owners or {}
        self.calls = []

    def similarity_search(self, query_embedding, owner_user_id, document_ids, limit):
        self.calls.append({
            "query_embedding": query_embedding,
            "owner_user_id": owner_user_id,
            "document_ids": document_ids,
            "limit": limit,
        })
        rows = [
            m for m in self.matches
            if self.owners.get(m.document_id, "demo-user-1") == owner_user_id
            and (not document_ids or m.document_id in document_ids)
        ]
        return sorted(rows, key=lambda m: m.distance)[:limit]

    def add_chunks(self, document, chunks, embeddings):
        raise NotImplementedError


def match(doc_id, index, distance, title=None, page=None):
    return ChunkMatch(
        chunk_id=f"{doc_id}-{index}",
        document_id=doc_id,
        document_title=title or doc_id,
        chunk_index=index,
        content=f"content of {doc_id} chunk {index}",
        page=page,
        distance=distance,
    )


def make_retriever(matches, top_k=6, owners=None, embedder=None):
    store = InMemoryChunkStore(matches, owners=owners)
    retriever = Retriever(
        embedder=embedder or FakeEmbedder(),
        store=store,
        config=RagConfig(top_k=top_k),
    )
    return retriever, store


# ============================================================================
# Retriever Tests
# ============================================================================

class TestRetriever:
    """Tests for Retriever.retrieve."""

    def test_ranked_by_similarity(self):
        """Chunks should come back with the closest first."""
        retriever, _ = make_retriever([
            match("doc-a", 0, 0.40),
            match("doc-a", 1, 0.10),
            match("doc-b", 0, 0.25),
        ])

        chunks = retriever.retrieve("refund policy")

        assert [(c.document_id, c.chunk_index) for c in chunks] == [
            ("doc-a", 1), ("doc-b", 0), ("doc-a", 0),
        ]

    def test_similarity_is_one_minus_distance(self):
        retriever, _ = make_retriever([match("doc-a", 0, 0.25)])

        chunks = retriever.retrieve("q")

        assert chunks[0].similarity == pytest.approx(0.75)

    def test_limited_to_top_k(self):
        retriever, store = make_retriever(
            [match("doc-a", i, 0.1 * i) for i in range(10)],
            top_k=3,
        )

        chunks = retriever.retrieve("q")

        assert len(chunks) == 3
        assert store.calls[0]["limit"] == 3 + TIE_CANDIDATES

    def test_fewer_chunks_than_top_k(self):
        retriever, _ = make_retriever([match("doc-a", 0, 0.1)], top_k=6)

        assert len(retriever.retrieve("q")) == 1

    def test_empty_corpus(self):
        retriever, _ = make_retriever([])

        assert retriever.retrieve("anything") == []

    def test_ties_broken_by_chunk_index_then_document(self):
        """Equal distances should order by chunk index, then document id."""
        retriever, _ = make_retriever([
            match("doc-b", 3, 0.2),
            match("doc-b", 0, 0.2),
            match("doc-a", 3, 0.2),
        ])

        chunks = retriever.retrieve("q")

        assert [(c.document_id, c.chunk_index) for c in chunks] == [
            ("doc-b", 0), ("doc-a", 3), ("doc-b", 3),
        ]

    def test_ties_at_cut_off_use_ranking_key(self):
        """A tie straddling top_k is settled by chunk index, not by store order."""
        retriever, _ = make_retriever([
            match("doc-b", 0, 0.1),
            match("doc-b", 5, 0.2),
            match("doc-a", 5, 0.2),
            match("doc-c", 1, 0.2),
        ], top_k=2)

        chunks = retriever.retrieve("q")

        assert [(c.document_id, c.chunk_index) for c in chunks] == [
            ("doc-b", 0), ("doc-c", 1),
        ]

    def test_deterministic(self):
        """Same store and query should give identical results."""
        matches = [match("doc-a", i, 0.3) for i in range(5)] + [match("doc-b", 1, 0.1)]
        retriever, _ = make_retriever(matches)

        assert retriever.retrieve("q") == retriever.retrieve("q")

    def test_document_filter(self):
        """An allow-list should restrict results to those documents."""
        retriever, store = make_retriever([
            match("doc-a", 0, 0.1),
            match("doc-b", 0, 0.2),
        ])

        chunks = retriever.retrieve("q", document_ids=["doc-b"])

        assert [c.document_id for c in chunks] == ["doc-b"]
        assert store.calls[0]["document_ids"] == ["doc-b"]

    def test_empty_filter_searches_everything(self):
        retriever, store = make_retriever([match("doc-a", 0, 0.1)])

        retriever.retrieve("q", document_ids=[])

        assert store.calls[0]["document_ids"] is None

    def test_owner_scoping(self):
        """Chunks of other users' documents should never be returned."""
        retriever, store = make_retriever(
            [match("mine", 0, 0.3), match("theirs", 0, 0.1)],
            owners={"mine": "user-1", "theirs": "user-2"},
        )

        chunks = retriever.retrieve("q", owner_user_id="user-1")

        assert [c.document_id for c in chunks] == ["mine"]
        assert store.calls[0]["owner_user_id"] == "user-1"

    def test_owner_defaults_to_demo_user(self):
        retriever, store = make_retriever([])

        retriever.retrieve("q")

        assert store.calls[0]["owner_user_id"] == "demo-user-1"

    def test_query_vector_passed_to_store(self):
        embedder = FakeEmbedder(vector=[0.5, 0.5, 0.0])
        retriever, store = make_retriever([], embedder=embedder)

        retriever.retrieve("refund policy")

        assert embedder.queries == ["refund policy"]
        assert store.calls[0]["query_embedding"] == [0.5, 0.5, 0.0]

    def test_embedding_error_propagates(self):
        """An embedding failure should surface unchanged without querying the store."""
        embedder = FakeEmbedder(error=ProviderUnavailable("Ollama down"))
        retriever, store = make_retriever([match("doc-a", 0, 0.1)], embedder=embedder)

        with pytest.raises(ProviderUnavailable):
            retriever.retrieve("q")

        assert store.calls == []


class TestRetrievedChunk:
    """Tests for the RetrievedChunk dataclass."""

    def test_to_dict(self):
        chunk = RetrievedChunk.from_match(match("doc-a", 2, 0.123456, title="Terms", page=4))

        result = chunk.to_dict()

        assert result == {
            "id": "doc-a-2",
            "documentId": "doc-a",
            "documentTitle": "Terms",
            "chunkIndex": 2,
            "content": "content of doc-a chunk 2",
            "page": 4,
            "similarity": 0.8765,
        }


# ============================================================================
# PgVectorChunkStore Tests
# ============================================================================

def install_cursor(mock_connection, rows=None, error=None):
    cursor = MagicMock()
    cursor.fetchall.return_value = rows or []
    if error:
        cursor.execute.side_effect = error
    mock_connection.cursor.return_value.__enter__.return_value = cursor
    mock_connection.cursor.return_value.__exit__.return_value = False
    return cursor


class TestPgVectorChunkStore:
    """Tests for the raw SQL similarity query."""

    @patch('apps.rag.retrieval.connection')
    def test_query_scoped_to_owner(self, mock_connection):
        cursor = install_cursor(mock_connection)

        PgVectorChunkStore().similarity_search([0.5, 1.0], "user-1", None, 6)

        sql, params = cursor.execute.call_args[0]
        assert "d.owner_user_id = %s" in sql
        assert "<=>" in sql
        assert " IN (" not in sql
        assert params == ["[0.5,1.0]", "user-1", "[0.5,1.0]", 6]

    @patch('apps.rag.retrieval.connection')
    def test_query_with_document_filter(self, mock_connection):
        cursor = install_cursor(mock_connection)

        PgVectorChunkStore().similarity_search([1.0], "user-1", ["doc-a", "doc-b"], 3)

        sql, params = cursor.execute.call_args[0]
        assert "c.document_id IN (%s, %s)" in sql
        assert params == ["[1.0]", "user-1", "doc-a", "doc-b", "[1.0]", 3]

    @patch('apps.rag.retrieval.connection')
    def test_ordered_by_distance_only(self, mock_connection):
        """The HNSW index is only used when ORDER BY is the bare distance."""
        cursor = install_cursor(mock_connection)

        PgVectorChunkStore().similarity_search([1.0], "user-1", None, 6)

        sql = " ".join(cursor.execute.call_args[0][0].split())
        assert sql.endswith("ORDER BY c.embedding <=> %s::vector LIMIT %s")

    @patch('apps.rag.retrieval.connection')
    def test_rows_mapped_to_matches(self, mock_connection):
        install_cursor(mock_connection, rows=[
            ("chunk-1", "doc-1", 0, "Refunds are allowed within 30 days.", None, "Terms", 0.12),
        ])

        matches = PgVectorChunkStore().similarity_search([1.0], "user-1", None, 6)

        assert matches == [ChunkMatch(
            chunk_id="chunk-1",
            document_id="doc-1",
            document_title="Terms",
            chunk_index=0,
            content="Refunds are allowed within 30 days.",
            page=None,
            distance=0.12,
        )]

    @patch('apps.rag.retrieval.connection')
    def test_dimension_error_mapped(self, mock_connection):
        install_cursor(mock_connection, error=DataError("different vector dimensions 3 and 768"))

        with pytest.raises(DimensionMismatchError) as exc_info:
            PgVectorChunkStore().similarity_search([1.0, 0.0, 0.0], "user-1", None, 6)

        assert exc_info.value.stage == "retrieval"

    @patch('apps.rag.retrieval.connection')
    def test_database_error_mapped(self, mock_connection):
        install_cursor(mock_connection, error=DatabaseError("connection lost"))

        with pytest.raises(RetrievalError):
            PgVectorChunkStore().similarity_search([1.0], "user-1", None, 6)

    def test_add_chunks_length_mismatch(self):
        with pytest.raises(ValueError):
            PgVectorChunkStore().add_chunks(MagicMock(), [MagicMock()], [])


class TestAddChunks:
    """Tests for storing chunk rows."""

    @patch('apps.indexing.models.DocumentChunk')
    def test_rows_bulk_created(self, mock_chunk_model):
        chunks = [MagicMock(index=0), MagicMock(index=1)]

        count = PgVectorChunkStore().add_chunks(MagicMock(), chunks, [[1.0], [0.0]])

        assert count == 2
        rows = mock_chunk_model.objects.bulk_create.call_args[0][0]
        assert len(rows) == 2

    @patch('apps.indexing.models.DocumentChunk')
    def test_dimension_error_mapped(self, mock_chunk_model):
        """A vector that does not fit the column is a configuration problem."""
        mock_chunk_model.objects.bulk_create.side_effect = DataError(
            "expected 768 dimensions, not 3"
        )

        with pytest.raises(DimensionMismatchError) as exc_info:
            PgVectorChunkStore().add_chunks(MagicMock(), [MagicMock(index=0)], [[1.0, 0.0, 0.0]])

        assert exc_info.value.stage == "embedding"

    @patch('apps.indexing.models.DocumentChunk')
    def test_database_error_mapped(self, mock_chunk_model):
        mock_chunk_model.objects.bulk_create.side_effect = DatabaseError("connection lost")

        with pytest.raises(RetrievalError):
            PgVectorChunkStore().add_chunks(MagicMock(), [MagicMock(index=0)], [[1.0]])

    @patch('apps.indexing.models.DocumentChunk')
    def test_other_data_error_mapped(self, mock_chunk_model):
        mock_chunk_model.objects.bulk_create.side_effect = DataError("value too long")

        with pytest.raises(RetrievalError) as exc_info:
            PgVectorChunkStore().add_chunks(MagicMock(), [MagicMock(index=0)], [[1.0]])

        assert not isinstance(exc_info.value, DimensionMismatchError)
