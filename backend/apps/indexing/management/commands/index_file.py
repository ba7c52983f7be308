"""
Django management command to index a local file without going through HTTP.

Usage:
    python manage.py index_file path/to/report.pdf
    python manage.py index_file notes.txt --title "Meeting notes"
"""
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.docs.models import Document
from apps.docs.storage import StorageError, get_storage
from apps.docs.views import EXTENSION_TO_MIME
from apps.indexing.extractor import ExtractionError
from apps.indexing.pipeline import index_document
from apps.rag.errors import RagError


class Command(BaseCommand):
    help = 'Store and index a PDF or TXT file for the demo user'

    def add_arguments(self, parser):
        parser.add_argument('path', help='File to index')
        parser.add_argument('--title', help='Document title (defaults to the filename)')
        parser.add_argument(
            '--owner',
            default=getattr(settings, 'DEMO_USER_ID', 'demo-user-1'),
            help='Owner user id',
        )

    def handle(self, *args, **options):
        source = Path(options['path'])
        if not source.is_file():
            raise CommandError(f"File not found: {source}")

        extension = source.suffix.lower()
        mime_type = EXTENSION_TO_MIME.get(extension)
        if mime_type is None:
            raise CommandError('Only PDF and TXT files are supported')

        storage = get_storage()
        stored_name = None
        indexed = False

        try:
            with transaction.atomic():
                document = Document.objects.create(
                    owner_user_id=options['owner'],
                    title=options['title'] or source.name,
                    mime_type=mime_type,
                    size_bytes=source.stat().st_size,
                    storage_path='',
                )
                stored_name = storage.copy_from(str(document.id), source)
                document.storage_path = stored_name
                document.save(update_fields=['storage_path'])

                count = index_document(document, storage.get_path(document.storage_path))
            indexed = True
        except (ExtractionError, RagError, StorageError) as e:
            raise CommandError(f"Indexing failed: {e}")
        finally:
            if stored_name and not indexed:
                storage.delete(stored_name)

        self.stdout.write(self.style.SUCCESS(
            f"Indexed {document.title} as {document.id} ({count} chunks)"
        ))
