"""
Document upload and management views.

Provides endpoints for:
- POST /api/upload - Upload and index a new document
- GET /api/documents - List the user's documents
- DELETE /api/documents/<id> - Delete a document, its chunks and file
- GET /api/documents/<id>/chunks/<index> - Full text of one chunk
"""
import logging
from pathlib import Path
from django.conf import settings
from django.db import transaction
from django.db.models import Count
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods
from django.views.decorators.csrf import csrf_exempt

from apps.authn.middleware import auth_required
from apps.indexing.extractor import ExtractionError
from apps.indexing.pipeline import index_document
from apps.rag.errors import RagError
from apps.rag.views import rag_error_response
from .models import Document
from .storage import get_storage, StorageError

logger = logging.getLogger(__name__)

EXTENSION_TO_MIME = {
    '.pdf': 'application/pdf',
    '.txt': 'text/plain',
}


def get_extension(filename: str) -> str:
    """Extract file extension from filename."""
    return Path(filename).suffix.lower()


def normalize_content_type(content_type: str, filename: str) -> str:
    """
    Normalize content type, using file extension as fallback.

    Some browsers/clients send generic MIME types, so we also check extension.
    """
    content_type = (content_type or '').split(';')[0].strip().lower()
    if content_type in ('application/octet-stream', 'binary/octet-stream', ''):
        return EXTENSION_TO_MIME.get(get_extension(filename), content_type)
    return content_type


@csrf_exempt
@require_http_methods(["POST"])
@auth_required
def upload_document(request):
    """
    Upload and index a PDF or TXT file.

    POST /api/upload (multipart/form-data, field 'file')

    Returns:
        {
            "success": true,
            "document": {"id": "uuid", "title": "report.pdf", "createdAt": "..."},
            "chunksCount": 12
        }
    """
    uploaded_file = request.FILES.get('file')
    if uploaded_file is None:
        return JsonResponse({'error': 'No file provided'}, status=400)

    filename = uploaded_file.name
    size_bytes = uploaded_file.size

    logger.info(f"Upload request: {filename}, {uploaded_file.content_type}, {size_bytes} bytes")

    if size_bytes > settings.MAX_FILE_SIZE:
        max_mb = settings.MAX_FILE_SIZE // (1024 * 1024)
        return JsonResponse(
            {'error': f'File size exceeds maximum of {max_mb}MB'},
            status=400
        )

    mime_type = normalize_content_type(uploaded_file.content_type, filename)
    if mime_type not in settings.ALLOWED_CONTENT_TYPES:
        return JsonResponse(
            {'error': 'Only PDF and TXT files are supported'},
            status=400
        )

    storage = get_storage()
    storage_path = None
    indexed = False

    try:
        with transaction.atomic():
            document = Document.objects.create(
                owner_user_id=request.user_id,
                title=filename,
                mime_type=mime_type,
                size_bytes=size_bytes,
                storage_path='',
            )

            storage_path = storage.save(str(document.id), get_extension(filename), uploaded_file)
            document.storage_path = storage_path
            document.save(update_fields=['storage_path'])

            chunks_count = index_document(document, storage.get_path(storage_path))
        indexed = True

    except ExtractionError as e:
        logger.warning(f"Extraction failed for {filename}: {e}")
        return JsonResponse({'error': str(e)}, status=400)
    except StorageError as e:
        logger.error(f"Storage error during upload: {e}")
        return JsonResponse({'error': 'Failed to store file'}, status=500)
    except RagError as e:
        logger.error(f"Indexing failed for {filename} at {e.stage}: {e}")
        return rag_error_response(e)
    finally:
        # The document row was rolled back, so its file has no owner
        if not indexed:
            _discard_file(storage, storage_path)

    logger.info(f"Document created: {document.id} with {chunks_count} chunks")

    return JsonResponse({
        'success': True,
        'document': {
            'id': str(document.id),
            'title': document.title,
            'createdAt': document.created_at.isoformat(),
        },
        'chunksCount': chunks_count,
    }, status=201)


def _discard_file(storage, storage_path):
    if storage_path:
        try:
            storage.delete(storage_path)
        except StorageError as e:
            logger.warning(f"Could not remove file after failed upload: {e}")


@csrf_exempt
@require_http_methods(["GET"])
@auth_required
def list_documents(request):
    """
    List all documents for the current user.

    GET /api/documents

    Returns:
        {
            "documents": [
                {
                    "id": "uuid",
                    "title": "document.pdf",
                    "mimeType": "application/pdf",
                    "createdAt": "2024-01-01T00:00:00Z",
                    "chunksCount": 12
                }
            ]
        }
    """
    documents = Document.objects.filter(
        owner_user_id=request.user_id
    ).annotate(chunks_count=Count('chunks')).order_by('-created_at')

    return JsonResponse({
        'documents': [
            {
                'id': str(doc.id),
                'title': doc.title,
                'mimeType': doc.mime_type,
                'createdAt': doc.created_at.isoformat(),
                'chunksCount': doc.chunks_count,
            }
            for doc in documents
        ]
    })


def _get_owned_document(user_id: str, document_id):
    try:
        return Document.objects.get(id=document_id, owner_user_id=user_id)
    except Document.DoesNotExist:
        return None


@csrf_exempt
@require_http_methods(["DELETE"])
@auth_required
def delete_document(request, document_id):
    """
    Delete a document. Its chunks go with it (cascade), then the file.

    DELETE /api/documents/<document_id>
    """
    document = _get_owned_document(request.user_id, document_id)
    if document is None:
        return JsonResponse({'error': 'Document not found'}, status=404)

    storage_path = document.storage_path
    document.delete()

    if storage_path:
        try:
            get_storage().delete(storage_path)
        except StorageError as e:
            logger.warning(f"Document {document_id} deleted but file removal failed: {e}")

    logger.info(f"Deleted document {document_id}")
    return JsonResponse({'success': True})


@csrf_exempt
@require_http_methods(["GET"])
@auth_required
def get_chunk(request, document_id, chunk_index):
    """
    Get a specific chunk from a document.

    GET /api/documents/<document_id>/chunks/<chunk_index>

    Used for viewing citation sources.
    """
    from apps.indexing.models import DocumentChunk

    document = _get_owned_document(request.user_id, document_id)
    if document is None:
        return JsonResponse({'error': 'Document not found'}, status=404)

    try:
        chunk = DocumentChunk.objects.get(document=document, chunk_index=chunk_index)
    except DocumentChunk.DoesNotExist:
        return JsonResponse({'error': 'Chunk not found'}, status=404)

    return JsonResponse({
        'documentId': str(document.id),
        'chunkId': str(chunk.id),
        'chunkIndex': chunk.chunk_index,
        'page': chunk.page,
        'content': chunk.content,
        'title': document.title,
    })
