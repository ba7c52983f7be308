"""
LLM Client Abstraction Layer.

Provides a unified interface for chat completions that can switch between:
- Ollama (local inference)
- OpenAI-compatible APIs (hosted)

The backend is chosen once from configuration by get_llm_client().
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from apps.rag.config import PROVIDER_OLLAMA, PROVIDER_OPENAI, RagConfig
from apps.rag.errors import (
    STAGE_GENERATION,
    ConfigurationError,
    GenerationUnavailable,
    MalformedResponse,
    describe_http_error,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.1  # Low for grounded, low-variance answers

# Returned when the backend succeeds but produces no text
EMPTY_ANSWER_FALLBACK = "I couldn't generate a response."

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class ChatMessage:
    """A message in a chat request."""
    role: str  # "system", "user", or "assistant"
    content: str

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Invalid chat role: {self.role!r}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


def _parse_json(response: httpx.Response, backend: str) -> Any:
    try:
        return response.json()
    except ValueError:
        raise MalformedResponse(
            f"{backend} returned a non-JSON body",
            stage=STAGE_GENERATION,
            status_code=response.status_code,
            body=response.text,
        )


class BaseLLMClient(ABC):
    """Abstract base class for LLM clients."""

    @abstractmethod
    def complete(
        self,
        messages: List[ChatMessage],
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """
        Send a chat completion request.

        Args:
            messages: Ordered messages of the request
            temperature: Sampling temperature (0-1)

        Returns:
            The answer text, or EMPTY_ANSWER_FALLBACK if the backend
            answered successfully with no content

        Raises:
            GenerationUnavailable: Transport error or non-2xx response
            MalformedResponse: 2xx response without the expected fields
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model name being used."""
        pass

    def _post(self, backend: str, url: str, payload: Dict[str, Any], headers=None) -> Any:
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException:
            logger.error(f"{backend} chat request timed out")
            raise GenerationUnavailable(f"{backend} chat service timed out")
        except httpx.RequestError as e:
            logger.error(f"{backend} connection error: {e}")
            raise GenerationUnavailable(f"Could not connect to {backend}: {e}")

        if not 200 <= response.status_code < 300:
            logger.error(f"{backend} chat failed with status {response.status_code}")
            raise GenerationUnavailable(
                describe_http_error(f"{backend} chat", response.status_code, response.text),
                status_code=response.status_code,
                body=response.text,
            )

        return _parse_json(response, backend)


class OllamaClient(BaseLLMClient):
    """LLM client for Ollama local inference."""

    def __init__(self, config: RagConfig):
        self.base_url = (config.ollama_host or "").rstrip('/')
        self.model = config.chat_model
        self.timeout = float(config.chat_timeout)

        if not self.base_url:
            raise ConfigurationError("OLLAMA_HOST not configured", stage=STAGE_GENERATION)

    @property
    def model_name(self) -> str:
        return self.model

    def complete(
        self,
        messages: List[ChatMessage],
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """Send chat request to Ollama."""
        logger.info(f"Calling Ollama chat: model={self.model}, temp={temperature}")

        data = self._post(
            "Ollama",
            f"{self.base_url}/api/chat",
            {
                "model": self.model,
                "messages": [msg.to_dict() for msg in messages],
                "stream": False,
                "options": {
                    "temperature": temperature,
                },
            },
        )

        if not isinstance(data, dict):
            raise MalformedResponse("Ollama chat response is not an object", stage=STAGE_GENERATION)
        if data.get("error"):
            raise GenerationUnavailable(f"Ollama chat error: {data['error']}")
        if "message" not in data:
            raise MalformedResponse("Ollama chat response missing message field", stage=STAGE_GENERATION)

        content = (data.get("message") or {}).get("content") or ""
        if not content.strip():
            logger.warning("Ollama returned an empty answer, using fallback text")
            return EMPTY_ANSWER_FALLBACK

        logger.info(f"Ollama response: {len(content)} chars")
        return content


class OpenAICompatibleClient(BaseLLMClient):
    """
    LLM client for OpenAI-compatible APIs.

    Works with: OpenAI, Azure OpenAI, Groq, Together, local servers, etc.
    """

    def __init__(self, config: RagConfig):
        self.api_key = config.openai_api_key
        self.base_url = (config.openai_base_url or "").rstrip('/')
        self.model = config.chat_model
        self.timeout = float(config.openai_timeout)

        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is required when USE_OLLAMA=false",
                stage=STAGE_GENERATION,
            )
        if not self.base_url:
            raise ConfigurationError("OPENAI_BASE_URL not configured", stage=STAGE_GENERATION)

    @property
    def model_name(self) -> str:
        return self.model

    def complete(
        self,
        messages: List[ChatMessage],
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> str:
        """Send chat request to OpenAI-compatible API."""
        logger.info(f"Calling OpenAI API: model={self.model}, temp={temperature}")

        data = self._post(
            "OpenAI",
            f"{self.base_url}/chat/completions",
            {
                "model": self.model,
                "messages": [msg.to_dict() for msg in messages],
                "temperature": temperature,
            },
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )

        if not isinstance(data, dict) or not isinstance(data.get("choices"), list):
            raise MalformedResponse("OpenAI response missing choices field", stage=STAGE_GENERATION)

        choices = data["choices"]
        content = ""
        if choices:
            content = ((choices[0] or {}).get("message") or {}).get("content") or ""

        if not content.strip():
            logger.warning("OpenAI returned an empty answer, using fallback text")
            return EMPTY_ANSWER_FALLBACK

        logger.info(f"OpenAI response: {len(content)} chars")
        return content


# =============================================================================
# Client Factory
# =============================================================================

def get_llm_client(config: Optional[RagConfig] = None) -> BaseLLMClient:
    """
    Build the LLM client selected by configuration.

    Uses llm_provider to determine which client to use:
    - "ollama" (default): Local Ollama inference
    - "openai": OpenAI or compatible API

    Raises:
        ConfigurationError: Unknown provider or missing credentials
    """
    config = config or RagConfig.from_settings()
    provider = (config.llm_provider or "").lower()

    if provider == PROVIDER_OPENAI:
        logger.info("Using OpenAI-compatible API for LLM inference")
        return OpenAICompatibleClient(config)
    if provider == PROVIDER_OLLAMA:
        logger.info("Using Ollama for LLM inference")
        return OllamaClient(config)

    raise ConfigurationError(f"Unknown LLM provider: {provider!r}", stage=STAGE_GENERATION)
