"""
Django management command to ask a question from the shell.

Usage:
    python manage.py ask "What is the refund policy?"
    python manage.py ask "Summarize the terms" --doc <uuid> --doc <uuid>
"""
from django.core.management.base import BaseCommand, CommandError

from apps.rag.chat import build_chat_service
from apps.rag.embeddings import QueryValidationError, normalize_query
from apps.rag.errors import RagError


class Command(BaseCommand):
    help = 'Answer a question from the indexed documents'

    def add_arguments(self, parser):
        parser.add_argument('question')
        parser.add_argument(
            '--doc',
            action='append',
            dest='document_ids',
            default=[],
            help='Restrict retrieval to this document id (repeatable)',
        )

    def handle(self, *args, **options):
        try:
            question = normalize_query(options['question'])
            response = build_chat_service().answer(
                question,
                document_ids=options['document_ids'],
            )
        except QueryValidationError as e:
            raise CommandError(str(e))
        except RagError as e:
            raise CommandError(f"{e.stage} failed: {e}")

        self.stdout.write(response.answer)
        if response.citations:
            self.stdout.write('')
            self.stdout.write(self.style.MIGRATE_HEADING('Sources:'))
            for citation in response.citations:
                page = f", page {citation.page}" if citation.page is not None else ""
                self.stdout.write(
                    f"- {citation.document_title}, chunk {citation.chunk_index}{page}: "
                    f"{citation.snippet}"
                )
