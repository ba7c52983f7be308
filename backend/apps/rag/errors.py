"""
Error taxonomy for the RAG pipeline.

Every error raised by the pipeline carries the stage it came from so callers
can tell an embedding failure from a generation failure without parsing
messages.
"""
from typing import Optional

# Pipeline stages
STAGE_CONFIGURATION = "configuration"
STAGE_EMBEDDING = "embedding"
STAGE_RETRIEVAL = "retrieval"
STAGE_GENERATION = "generation"

# Backend bodies are truncated to this many characters in error messages
MAX_ERROR_BODY = 500


class RagError(Exception):
    """Base class for pipeline errors."""

    default_stage = STAGE_CONFIGURATION

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.stage = stage or self.default_stage
        self.status_code = status_code
        self.body = body[:MAX_ERROR_BODY] if body else body
        super().__init__(message)

    def to_dict(self) -> dict:
        data = {"error": str(self), "stage": self.stage}
        if self.status_code is not None:
            data["backendStatus"] = self.status_code
        return data


class ConfigurationError(RagError):
    """Missing or invalid backend credentials, host or settings. Never retried."""
    pass


class DimensionMismatchError(ConfigurationError):
    """Embedding dimensionality disagrees with the configured or stored vectors."""
    pass


class ProviderUnavailable(RagError):
    """The embedding backend could not be reached or returned a non-2xx status."""

    default_stage = STAGE_EMBEDDING


class GenerationUnavailable(RagError):
    """The generation backend could not be reached or returned a non-2xx status."""

    default_stage = STAGE_GENERATION


class MalformedResponse(RagError):
    """A backend answered 2xx but the payload lacks the expected field."""
    pass


class RetrievalError(RagError):
    """The chunk store failed to execute the similarity query."""

    default_stage = STAGE_RETRIEVAL


def describe_http_error(backend: str, status_code: int, body: str) -> str:
    """Build the single descriptive message used for non-2xx backend responses."""
    detail = body[:MAX_ERROR_BODY] if body else "No details"
    return f"{backend} request failed ({status_code}): {detail}"
