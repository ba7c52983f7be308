"""
Document model.

A document is created once on upload and is never edited afterwards; the only
later change is deletion, which cascades to its chunks.
"""
import uuid
from django.db import models


class Document(models.Model):
    """
    A document uploaded by a user for RAG indexing.

    The file lives on disk under UPLOAD_ROOT; this row tracks its metadata.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Owner id (single demo user while auth is stubbed)
    owner_user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="ID of the user who uploaded the document"
    )

    # File metadata
    title = models.CharField(
        max_length=255,
        help_text="Original filename, shown in citations"
    )
    mime_type = models.CharField(
        max_length=100,
        help_text="MIME type of the file"
    )
    size_bytes = models.PositiveIntegerField(
        default=0,
        help_text="File size in bytes"
    )

    # Storage location
    storage_path = models.CharField(
        max_length=500,
        help_text="Path to file on disk (relative to upload root)"
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'documents'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['owner_user_id', 'created_at']),
        ]

    def __str__(self):
        return f"{self.title} ({self.mime_type})"
