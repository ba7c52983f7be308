"""
Embedding providers for queries and document chunks.

Two interchangeable backends sit behind one interface:
- Ollama (local inference server), one text per request
- OpenAI-compatible hosted API, native batch input

The backend is chosen once from configuration by get_embedding_provider().
Callers only see embed() and embed_batch().
"""
import logging
import re
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, List, Optional

import httpx

from apps.rag.config import PROVIDER_OLLAMA, PROVIDER_OPENAI, RagConfig
from apps.rag.errors import (
    STAGE_EMBEDDING,
    ConfigurationError,
    DimensionMismatchError,
    MalformedResponse,
    ProviderUnavailable,
    RagError,
    describe_http_error,
)

logger = logging.getLogger(__name__)

# Inputs per hosted-API request
OPENAI_BATCH_SIZE = 100

MAX_QUERY_LENGTH = 2000


class QueryValidationError(Exception):
    """Raised when query validation fails."""
    pass


def normalize_query(query: str) -> str:
    """
    Normalize a user query for embedding.

    - Strip leading/trailing whitespace
    - Collapse multiple whitespace to single space
    - Raise if empty or too long

    Raises:
        QueryValidationError: If query is empty after normalization
    """
    if not query or not isinstance(query, str):
        raise QueryValidationError("Query cannot be empty")

    normalized = re.sub(r'\s+', ' ', query.strip())

    if not normalized:
        raise QueryValidationError("Query cannot be empty")

    if len(normalized) > MAX_QUERY_LENGTH:
        raise QueryValidationError(f"Query too long (max {MAX_QUERY_LENGTH} characters)")

    return normalized


def _parse_json(response: httpx.Response, backend: str) -> Any:
    try:
        return response.json()
    except ValueError:
        raise MalformedResponse(
            f"{backend} returned a non-JSON body",
            stage=STAGE_EMBEDDING,
            status_code=response.status_code,
            body=response.text,
        )


class BaseEmbeddingProvider(ABC):
    """
    Abstract base class for embedding backends.

    All vectors produced by one provider share a single dimensionality. If the
    config pins one (embedding_dimensions), every vector is checked against it;
    otherwise the first vector seen fixes it.
    """

    def __init__(self, config: RagConfig):
        self.config = config
        self.model = config.embedding_model
        self._dimensions: Optional[int] = config.embedding_dimensions or None
        self._lock = threading.Lock()

    @property
    def dimensions(self) -> Optional[int]:
        return self._dimensions

    @abstractmethod
    def embed(self, text: str) -> List[float]:
        """
        Generate an embedding vector for a single text.

        Raises:
            ProviderUnavailable: Backend unreachable or non-2xx
            MalformedResponse: Payload lacks the vector field
            DimensionMismatchError: Vector length disagrees with the provider's
        """
        pass

    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed several texts; the result has the same length and order as texts."""
        pass

    def _check_dimensions(self, vector: List[float]) -> List[float]:
        with self._lock:
            if self._dimensions is None:
                self._dimensions = len(vector)
            expected = self._dimensions
        if len(vector) != expected:
            raise DimensionMismatchError(
                f"Embedding model {self.model} returned {len(vector)} dimensions, "
                f"expected {expected}. Re-index documents or fix EMBEDDING_DIMENSIONS.",
                stage=STAGE_EMBEDDING,
            )
        return vector


class OllamaEmbeddingProvider(BaseEmbeddingProvider):
    """
    Embeddings from a local Ollama server.

    Ollama's /api/embeddings takes one prompt per call, so embed_batch fans the
    texts out over a small thread pool and puts results back by input index.
    """

    def __init__(self, config: RagConfig):
        super().__init__(config)
        self.base_url = (config.ollama_host or "").rstrip('/')
        self.timeout = float(config.embed_timeout)
        self.concurrency = max(1, config.embedding_concurrency)

        if not self.base_url:
            raise ConfigurationError("OLLAMA_HOST not configured", stage=STAGE_EMBEDDING)

    def embed(self, text: str) -> List[float]:
        url = f"{self.base_url}/api/embeddings"

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    url,
                    json={
                        "model": self.model,
                        "prompt": text,
                    }
                )
        except httpx.TimeoutException:
            logger.error("Ollama embedding request timed out")
            raise ProviderUnavailable("Ollama embedding request timed out")
        except httpx.RequestError as e:
            logger.error(f"Ollama connection error: {e}")
            raise ProviderUnavailable(f"Cannot connect to Ollama at {self.base_url}: {e}")

        if not 200 <= response.status_code < 300:
            raise ProviderUnavailable(
                describe_http_error("Ollama embedding", response.status_code, response.text),
                status_code=response.status_code,
                body=response.text,
            )

        data = _parse_json(response, "Ollama")
        embedding = data.get("embedding") if isinstance(data, dict) else None
        if not embedding:
            detail = data.get("error") if isinstance(data, dict) else None
            raise MalformedResponse(
                detail or "Ollama embedding response missing embedding field",
                stage=STAGE_EMBEDDING,
                status_code=response.status_code,
            )

        logger.debug(f"Generated embedding with {len(embedding)} dimensions")
        return self._check_dimensions(embedding)

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        total = len(texts)
        if total == 0:
            return []

        workers = min(self.concurrency, total)
        if workers == 1:
            embeddings = []
            for i, text in enumerate(texts):
                try:
                    embeddings.append(self.embed(text))
                except RagError as e:
                    logger.error(f"Failed to embed text {i + 1}/{total}: {e}")
                    raise
            logger.info(f"Generated {total} embeddings")
            return embeddings

        results: List[Optional[List[float]]] = [None] * total
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self.embed, text): i for i, text in enumerate(texts)}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except RagError as e:
                for pending in futures:
                    pending.cancel()
                logger.error(f"Batch embedding failed after {sum(r is not None for r in results)}/{total}: {e}")
                raise

        logger.info(f"Generated {total} embeddings with {workers} workers")
        return results


class OpenAIEmbeddingProvider(BaseEmbeddingProvider):
    """
    Embeddings from an OpenAI-compatible API.

    Works with: OpenAI, Azure OpenAI, Together, local servers, etc.
    """

    def __init__(self, config: RagConfig):
        super().__init__(config)
        self.api_key = config.openai_api_key
        self.base_url = (config.openai_base_url or "").rstrip('/')
        self.timeout = float(config.openai_timeout)

        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is required when USE_OLLAMA=false",
                stage=STAGE_EMBEDDING,
            )
        if not self.base_url:
            raise ConfigurationError("OPENAI_BASE_URL not configured", stage=STAGE_EMBEDDING)

    def embed(self, text: str) -> List[float]:
        return self._request([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        embeddings = []
        for start in range(0, len(texts), OPENAI_BATCH_SIZE):
            embeddings.extend(self._request(texts[start:start + OPENAI_BATCH_SIZE]))
        if texts:
            logger.info(f"Generated {len(embeddings)} embeddings")
        return embeddings

    def _request(self, inputs: List[str]) -> List[List[float]]:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/embeddings",
                    json={
                        "model": self.model,
                        "input": inputs,
                    },
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    }
                )
        except httpx.TimeoutException:
            logger.error("OpenAI embedding request timed out")
            raise ProviderUnavailable("OpenAI embedding request timed out")
        except httpx.RequestError as e:
            logger.error(f"OpenAI connection error: {e}")
            raise ProviderUnavailable(f"Could not connect to OpenAI API: {e}")

        if not 200 <= response.status_code < 300:
            raise ProviderUnavailable(
                describe_http_error("OpenAI embedding", response.status_code, response.text),
                status_code=response.status_code,
                body=response.text,
            )

        data = _parse_json(response, "OpenAI")
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list) or len(items) != len(inputs):
            raise MalformedResponse(
                "OpenAI embedding response missing data for every input",
                stage=STAGE_EMBEDDING,
                status_code=response.status_code,
            )

        # Items carry their input position; do not trust payload order
        items = sorted(items, key=lambda item: item.get("index", 0))
        vectors = []
        for item in items:
            embedding = item.get("embedding")
            if not embedding:
                raise MalformedResponse(
                    "OpenAI embedding response missing embedding field",
                    stage=STAGE_EMBEDDING,
                    status_code=response.status_code,
                )
            vectors.append(self._check_dimensions(embedding))
        return vectors


def get_embedding_provider(config: Optional[RagConfig] = None) -> BaseEmbeddingProvider:
    """
    Build the embedding provider selected by configuration.

    Uses embedding_provider to pick the backend:
    - "ollama" (default): Local Ollama inference
    - "openai": OpenAI or compatible API

    Raises:
        ConfigurationError: Unknown provider or missing credentials
    """
    config = config or RagConfig.from_settings()
    provider = (config.embedding_provider or "").lower()

    if provider == PROVIDER_OPENAI:
        logger.info(f"Using OpenAI-compatible API for embeddings (model={config.embedding_model})")
        return OpenAIEmbeddingProvider(config)
    if provider == PROVIDER_OLLAMA:
        logger.info(f"Using Ollama for embeddings (model={config.embedding_model})")
        return OllamaEmbeddingProvider(config)

    raise ConfigurationError(f"Unknown embedding provider: {provider!r}", stage=STAGE_EMBEDDING)
