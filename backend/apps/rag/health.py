"""
Health check endpoints.

- /api/health - Database connectivity (what the frontend polls)
- /readyz - Readiness, also reporting model backend reachability
"""
import logging
from datetime import datetime, timezone

import httpx
from django.db import connection
from django.http import JsonResponse
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt

from apps.rag.config import PROVIDER_OLLAMA, RagConfig

logger = logging.getLogger(__name__)


def get_timestamp() -> str:
    """Get current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def check_database() -> tuple[str, bool]:
    """Check database connectivity."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
            cursor.fetchone()
        return 'connected', True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return f'disconnected: {str(e)[:50]}', False


def check_model_backend(config: RagConfig) -> str:
    """
    Check Ollama reachability (informational only).

    A hosted API is not probed; spending a request on it has a cost.
    """
    if PROVIDER_OLLAMA not in (config.embedding_provider, config.llm_provider):
        return 'not probed'
    try:
        with httpx.Client(timeout=5.0) as client:
            response = client.get(f'{config.ollama_host.rstrip("/")}/api/version')
        if response.status_code == 200:
            return 'ok'
        return f'status: {response.status_code}'
    except httpx.HTTPError as e:
        logger.warning(f"Ollama health check failed: {e}")
        return f'degraded: {str(e)[:30]}'


@csrf_exempt
@require_GET
def health(request):
    """Returns 200 when the database answers, 503 otherwise."""
    status, ok = check_database()
    if ok:
        return JsonResponse({'status': 'ok', 'database': status})
    return JsonResponse({'status': 'error', 'database': status}, status=503)


@csrf_exempt
@require_GET
def readyz(request):
    """
    Readiness probe endpoint.

    Only the database is critical; the model backend is reported but
    does not block readiness.
    """
    db_status, ok = check_database()
    checks = {
        'database': db_status,
        'model_backend': check_model_backend(RagConfig.from_settings()),
    }

    return JsonResponse({
        'status': 'ready' if ok else 'not_ready',
        'timestamp': get_timestamp(),
        'checks': checks,
    }, status=200 if ok else 503)
