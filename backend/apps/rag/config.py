"""
Pipeline configuration value.

Components take a RagConfig in their constructor instead of reading Django
settings directly, so tests can run the pipeline with any configuration.
"""
from dataclasses import dataclass

PROVIDER_OLLAMA = "ollama"
PROVIDER_OPENAI = "openai"


@dataclass(frozen=True)
class RagConfig:
    """Externally supplied settings for chunking, retrieval and model backends."""
    chunk_size_tokens: int = 800
    overlap_tokens: int = 150
    top_k: int = 6

    embedding_provider: str = PROVIDER_OLLAMA
    embedding_model: str = "nomic-embed-text"
    embedding_dimensions: int = 768
    embedding_concurrency: int = 4

    llm_provider: str = PROVIDER_OLLAMA
    chat_model: str = "llama3.1:8b"
    chat_temperature: float = 0.1

    ollama_host: str = "http://localhost:11434"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"

    embed_timeout: float = 120.0
    chat_timeout: float = 600.0
    openai_timeout: float = 120.0

    demo_user_id: str = "demo-user-1"

    @classmethod
    def from_settings(cls, settings=None) -> "RagConfig":
        """Build a config from Django settings, falling back to defaults."""
        if settings is None:
            from django.conf import settings

        defaults = cls()
        return cls(
            chunk_size_tokens=getattr(settings, 'CHUNK_SIZE_TOKENS', defaults.chunk_size_tokens),
            overlap_tokens=getattr(settings, 'OVERLAP_TOKENS', defaults.overlap_tokens),
            top_k=getattr(settings, 'TOP_K', defaults.top_k),
            embedding_provider=getattr(settings, 'EMBEDDING_PROVIDER', defaults.embedding_provider),
            embedding_model=getattr(settings, 'EMBEDDING_MODEL', defaults.embedding_model),
            embedding_dimensions=getattr(settings, 'EMBEDDING_DIMENSIONS', defaults.embedding_dimensions),
            embedding_concurrency=getattr(settings, 'EMBEDDING_CONCURRENCY', defaults.embedding_concurrency),
            llm_provider=getattr(settings, 'LLM_PROVIDER', defaults.llm_provider),
            chat_model=getattr(settings, 'CHAT_MODEL', defaults.chat_model),
            chat_temperature=getattr(settings, 'CHAT_TEMPERATURE', defaults.chat_temperature),
            ollama_host=getattr(settings, 'OLLAMA_HOST', defaults.ollama_host),
            openai_api_key=getattr(settings, 'OPENAI_API_KEY', defaults.openai_api_key),
            openai_base_url=getattr(settings, 'OPENAI_BASE_URL', defaults.openai_base_url),
            embed_timeout=float(getattr(settings, 'OLLAMA_EMBED_TIMEOUT', defaults.embed_timeout)),
            chat_timeout=float(getattr(settings, 'OLLAMA_CHAT_TIMEOUT', defaults.chat_timeout)),
            openai_timeout=float(getattr(settings, 'OPENAI_TIMEOUT', defaults.openai_timeout)),
            demo_user_id=getattr(settings, 'DEMO_USER_ID', defaults.demo_user_id),
        )
