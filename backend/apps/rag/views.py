"""
RAG API views.

Provides endpoints for:
- Chat (full RAG: retrieve + LLM + citations)
- Retrieval only (ranked chunks for a query)
"""
import logging
import json
import uuid

from django.http import JsonResponse
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from django.utils.decorators import method_decorator

from apps.authn.middleware import auth_required
from apps.rag.chat import build_chat_service
from apps.rag.config import RagConfig
from apps.rag.embeddings import QueryValidationError, get_embedding_provider, normalize_query
from apps.rag.errors import (
    GenerationUnavailable,
    MalformedResponse,
    ProviderUnavailable,
    RagError,
)
from apps.rag.retrieval import PgVectorChunkStore, Retriever

logger = logging.getLogger(__name__)


def rag_error_response(error: RagError) -> JsonResponse:
    """Map a pipeline error to a JSON error response."""
    if isinstance(error, (ProviderUnavailable, GenerationUnavailable)):
        status = 503
    elif isinstance(error, MalformedResponse):
        status = 502
    else:
        # ConfigurationError and store failures are server-side faults
        status = 500
    return JsonResponse(error.to_dict(), status=status)


class BadRequest(Exception):
    pass


def parse_request(request):
    """Parse the JSON body and its optional documentIds allow-list."""
    try:
        body = json.loads(request.body or b'{}')
    except json.JSONDecodeError:
        raise BadRequest("Invalid JSON")
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")

    document_ids = body.get("documentIds") or []
    if not isinstance(document_ids, list):
        raise BadRequest("documentIds must be a list of document IDs")
    try:
        document_ids = [str(uuid.UUID(str(doc_id))) for doc_id in document_ids]
    except ValueError:
        raise BadRequest("documentIds must contain valid UUIDs")

    return body, document_ids


@method_decorator(csrf_exempt, name='dispatch')
@method_decorator(auth_required, name='dispatch')
class ChatView(View):
    """
    POST /api/chat

    Request body:
        {
            "question": "What is the refund policy?",
            "documentIds": ["uuid", ...]  // optional
        }

    Response:
        {
            "answer": "Refunds are allowed within 30 days. [Document: Terms, Chunk: 0]",
            "citations": [
                {"documentTitle": "Terms", "chunkIndex": 0, "page": null, "snippet": "..."}
            ],
            "model": "llama3.1:8b"
        }
    """

    def post(self, request):
        try:
            body, document_ids = parse_request(request)
            question = normalize_query(body.get("question", ""))
        except (BadRequest, QueryValidationError) as e:
            return JsonResponse({"error": str(e)}, status=400)

        try:
            service = build_chat_service()
            response = service.answer(
                question,
                document_ids=document_ids,
                owner_user_id=request.user_id,
            )
        except RagError as e:
            logger.error(f"Chat failed at {e.stage}: {e}")
            return rag_error_response(e)

        return JsonResponse(response.to_dict())


@method_decorator(csrf_exempt, name='dispatch')
@method_decorator(auth_required, name='dispatch')
class RetrieveView(View):
    """
    POST /api/rag/retrieve

    Retrieve relevant document chunks for a query without calling the LLM.

    Request body:
        {
            "query": "What is the main topic?",
            "documentIds": ["uuid", ...]  // optional
        }
    """

    def post(self, request):
        try:
            body, document_ids = parse_request(request)
            query = normalize_query(body.get("query", ""))
        except (BadRequest, QueryValidationError) as e:
            return JsonResponse({"error": str(e)}, status=400)

        try:
            config = RagConfig.from_settings()
            retriever = Retriever(
                embedder=get_embedding_provider(config),
                store=PgVectorChunkStore(),
                config=config,
            )
            chunks = retriever.retrieve(
                query,
                document_ids=document_ids,
                owner_user_id=request.user_id,
            )
        except RagError as e:
            logger.error(f"Retrieval failed at {e.stage}: {e}")
            return rag_error_response(e)

        return JsonResponse({
            "query": query,
            "chunks": [chunk.to_dict() for chunk in chunks],
        })
