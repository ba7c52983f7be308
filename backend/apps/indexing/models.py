"""
Document chunk model for storing text chunks with embeddings.
"""
import uuid
from django.conf import settings
from django.db import models
from pgvector.django import VectorField

from apps.docs.models import Document


class DocumentChunk(models.Model):
    """
    A token window of a document with its embedding vector.

    Chunks are written once during ingestion and removed only when their
    document is deleted.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Link to parent document
    document = models.ForeignKey(
        Document,
        on_delete=models.CASCADE,
        related_name='chunks',
        help_text="The source document"
    )

    # Chunk ordering (0-indexed, no gaps)
    chunk_index = models.PositiveIntegerField(
        help_text="Index of this chunk within the document (0-based)"
    )

    # Chunk text content
    content = models.TextField(
        help_text="The text content of this chunk"
    )

    # Token window [token_start, token_end) in the document's token stream
    token_start = models.PositiveIntegerField()
    token_end = models.PositiveIntegerField()

    # Approximate page (PDF only, linear interpolation over tokens)
    page = models.PositiveIntegerField(null=True, blank=True)

    # Dimension is fixed by the embedding model (nomic-embed-text uses 768)
    embedding = VectorField(
        dimensions=getattr(settings, 'EMBEDDING_DIMENSIONS', 768),
        help_text="Vector embedding of the chunk content"
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'doc_chunks'
        ordering = ['document', 'chunk_index']
        constraints = [
            models.UniqueConstraint(
                fields=['document', 'chunk_index'],
                name='unique_document_chunk'
            ),
            models.CheckConstraint(
                condition=models.Q(token_start__lt=models.F('token_end')),
                name='chunk_token_range_valid'
            ),
        ]
        indexes = [
            models.Index(fields=['document', 'chunk_index']),
        ]

    def __str__(self):
        preview = self.content[:50] + '...' if len(self.content) > 50 else self.content
        return f"Chunk {self.chunk_index} of {self.document.title}: {preview}"
