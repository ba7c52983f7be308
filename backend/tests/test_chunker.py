"""
Tests for token-window chunking and page interpolation.
"""
import pytest
import tiktoken
from unittest.mock import patch

from apps.indexing.chunker import (
    DEFAULT_ENCODING,
    TextChunk,
    TokenChunker,
    assign_pages,
    interpolate_page,
)


def words(n):
    return " ".join(f"w{i}" for i in range(n))


# ============================================================================
# TokenChunker Tests
# ============================================================================

class TestTokenChunker:
    """Tests for TokenChunker.chunk."""

    def test_windows_cover_all_tokens(self, word_encoding):
        """Every token should fall inside at least one window."""
        chunker = TokenChunker(chunk_size=800, overlap=150, encoding=word_encoding)

        chunks = chunker.chunk(words(2000))

        covered = set()
        for chunk in chunks:
            covered.update(range(chunk.token_start, chunk.token_end))
        assert covered == set(range(2000))

    def test_windows_step_by_size_minus_overlap(self, word_encoding):
        """Consecutive windows should start chunk_size - overlap tokens apart."""
        chunker = TokenChunker(chunk_size=800, overlap=150, encoding=word_encoding)

        chunks = chunker.chunk(words(2000))

        assert [c.token_start for c in chunks] == [0, 650, 1300, 1950]
        assert [c.token_end for c in chunks] == [800, 1450, 2000, 2000]
        for chunk in chunks:
            assert chunk.token_count <= 800

    def test_indices_are_sequential(self, word_encoding):
        """Chunk indices should be 0..n-1 in emission order."""
        chunker = TokenChunker(chunk_size=10, overlap=3, encoding=word_encoding)

        chunks = chunker.chunk(words(95))

        assert [c.index for c in chunks] == list(range(len(chunks)))

    def test_chunk_content_matches_window(self, word_encoding):
        """Content should be the decoded token window."""
        chunker = TokenChunker(chunk_size=3, overlap=1, encoding=word_encoding)

        chunks = chunker.chunk("alpha beta gamma delta epsilon")

        assert chunks[0].content == "alpha beta gamma"
        assert chunks[1].content == "gamma delta epsilon"

    def test_short_text_single_chunk(self, word_encoding):
        """Text shorter than one window should produce exactly one chunk."""
        chunker = TokenChunker(chunk_size=800, overlap=150, encoding=word_encoding)

        chunks = chunker.chunk("Refunds are allowed within 30 days.")

        assert len(chunks) == 1
        assert chunks[0].content == "Refunds are allowed within 30 days."
        assert chunks[0].token_start == 0
        assert chunks[0].token_end == 6

    def test_empty_text(self, word_encoding):
        """Empty or whitespace-only text should produce no chunks."""
        chunker = TokenChunker(chunk_size=10, overlap=2, encoding=word_encoding)

        assert chunker.chunk("") == []
        assert chunker.chunk("   \n\t ") == []

    def test_overlap_not_smaller_than_size_emits_one_chunk(self, word_encoding):
        """overlap >= chunk_size should not loop forever; one chunk is emitted."""
        chunker = TokenChunker(chunk_size=10, overlap=10, encoding=word_encoding)

        chunks = chunker.chunk(words(100))

        assert len(chunks) == 1
        assert chunks[0].token_start == 0
        assert chunks[0].token_end == 10

    def test_deterministic(self, word_encoding):
        """Same input should always give the same chunks."""
        chunker = TokenChunker(chunk_size=7, overlap=2, encoding=word_encoding)
        text = words(50)

        assert chunker.chunk(text) == chunker.chunk(text)

    def test_invalid_chunk_size(self, word_encoding):
        with pytest.raises(ValueError):
            TokenChunker(chunk_size=0, overlap=0, encoding=word_encoding)

    def test_negative_overlap(self, word_encoding):
        with pytest.raises(ValueError):
            TokenChunker(chunk_size=10, overlap=-1, encoding=word_encoding)

    @patch('apps.indexing.chunker.tiktoken.get_encoding')
    def test_from_config(self, mock_get_encoding, word_encoding):
        """from_config should take sizes from the pipeline config."""
        from apps.rag.config import RagConfig
        mock_get_encoding.return_value = word_encoding

        chunker = TokenChunker.from_config(RagConfig(chunk_size_tokens=120, overlap_tokens=20))

        assert chunker.chunk_size == 120
        assert chunker.overlap == 20
        mock_get_encoding.assert_called_once_with(DEFAULT_ENCODING)


# ============================================================================
# cl100k_base Tests
# ============================================================================

@pytest.fixture(scope="module")
def cl100k():
    """The real BPE encoding; skipped when the encoding files cannot be loaded."""
    try:
        return tiktoken.get_encoding(DEFAULT_ENCODING)
    except Exception as e:
        pytest.skip(f"{DEFAULT_ENCODING} unavailable: {e}")


class TestCl100kChunking:
    """TokenChunker running on the tokenizer it uses in production."""

    TEXT = " ".join(["Refunds are allowed within 30 days of purchase with a receipt."] * 40)

    def test_windows_follow_bpe_tokens(self, cl100k):
        chunker = TokenChunker(chunk_size=40, overlap=10)
        total = len(cl100k.encode(self.TEXT))

        chunks = chunker.chunk(self.TEXT)

        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert [c.token_start for c in chunks] == list(range(0, total, 30))
        assert chunks[-1].token_end == total
        for chunk in chunks:
            assert chunk.token_count <= 40
            assert chunk.content

    def test_short_text_decodes_unchanged(self, cl100k):
        chunker = TokenChunker(chunk_size=800, overlap=150)

        chunks = chunker.chunk("  The warranty covers parts for 2 years.\n")

        assert len(chunks) == 1
        assert chunks[0].content == "The warranty covers parts for 2 years."
        assert chunks[0].token_end == len(cl100k.encode("  The warranty covers parts for 2 years.\n"))

    def test_special_token_text_is_plain_text(self, cl100k):
        """Special-token markup inside a document must not make encoding fail."""
        chunker = TokenChunker(chunk_size=800, overlap=150)

        chunks = chunker.chunk("Before <|endoftext|> after.")

        assert len(chunks) == 1
        assert chunks[0].content == "Before <|endoftext|> after."
        assert cl100k.eot_token not in chunker.encode("Before <|endoftext|> after.")


# ============================================================================
# Page Interpolation Tests
# ============================================================================

class TestInterpolatePage:
    """Tests for interpolate_page."""

    def test_first_token_is_page_one(self):
        assert interpolate_page(0, 1000, 10) == 1

    def test_midpoint(self):
        assert interpolate_page(500, 1000, 10) == 5

    def test_rounds_up(self):
        assert interpolate_page(501, 1000, 10) == 6

    def test_clamped_to_page_count(self):
        assert interpolate_page(999, 1000, 10) == 10
        assert interpolate_page(5000, 1000, 10) == 10


class TestAssignPages:
    """Tests for assign_pages."""

    def _chunks(self):
        return [
            TextChunk(index=0, content="a", token_start=0, token_end=40),
            TextChunk(index=1, content="b", token_start=30, token_end=70),
            TextChunk(index=2, content="c", token_start=60, token_end=100),
        ]

    def test_assigns_interpolated_pages(self):
        """Pages should follow the token position of each chunk."""
        chunks = assign_pages(self._chunks(), total_pages=4)

        assert [c.page for c in chunks] == [1, 2, 3]

    def test_unknown_page_count_leaves_pages_empty(self):
        chunks = assign_pages(self._chunks(), total_pages=None)

        assert [c.page for c in chunks] == [None, None, None]

    def test_does_not_mutate_input(self):
        original = self._chunks()

        assign_pages(original, total_pages=4)

        assert all(c.page is None for c in original)

    def test_empty_chunks(self):
        assert assign_pages([], total_pages=3) == []
