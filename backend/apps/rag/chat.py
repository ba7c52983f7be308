"""
Chat service for RAG.

Runs one question through the pipeline:
embed -> retrieve -> build prompt -> generate -> extract citations.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from apps.rag.citations import Citation, extract_citations
from apps.rag.config import RagConfig
from apps.rag.embeddings import get_embedding_provider
from apps.rag.llm_client import BaseLLMClient, get_llm_client
from apps.rag.prompt import build_chat_messages
from apps.rag.retrieval import PgVectorChunkStore, RetrievedChunk, Retriever

logger = logging.getLogger(__name__)

# Default response when no context is available
NO_CONTEXT_ANSWER = (
    "I don't have any relevant information in the provided documents "
    "to answer this question."
)


@dataclass
class ChatResponse:
    """Response from the chat pipeline."""
    answer: str
    citations: List[Citation]
    model: str
    chunks: List[RetrievedChunk] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
            "model": self.model,
        }


class ChatService:
    """Answers questions from retrieved document chunks."""

    def __init__(self, retriever: Retriever, llm_client: BaseLLMClient, config: RagConfig):
        self.retriever = retriever
        self.llm_client = llm_client
        self.temperature = config.chat_temperature

    def answer(
        self,
        question: str,
        document_ids: Optional[Sequence[str]] = None,
        owner_user_id: Optional[str] = None,
    ) -> ChatResponse:
        """
        Generate a grounded answer with citations.

        If nothing is retrieved, returns NO_CONTEXT_ANSWER without calling
        the LLM.
        """
        chunks = self.retriever.retrieve(
            question,
            document_ids=document_ids,
            owner_user_id=owner_user_id,
        )

        # Safety rail: no context means no LLM call
        if not chunks:
            logger.info("No context available, returning default response")
            return ChatResponse(
                answer=NO_CONTEXT_ANSWER,
                citations=[],
                model=self.llm_client.model_name,
            )

        messages = build_chat_messages(question, chunks)
        logger.debug(f"Full prompt:\n{messages[1].content}")

        answer = self.llm_client.complete(messages, temperature=self.temperature)
        citations = extract_citations(answer, chunks)

        logger.info(
            f"Answered with {len(citations)} citations from {len(chunks)} chunks"
        )

        return ChatResponse(
            answer=answer,
            citations=citations,
            model=self.llm_client.model_name,
            chunks=chunks,
        )


def build_chat_service(config: Optional[RagConfig] = None) -> ChatService:
    """Wire the production pipeline from configuration."""
    config = config or RagConfig.from_settings()
    retriever = Retriever(
        embedder=get_embedding_provider(config),
        store=PgVectorChunkStore(),
        config=config,
    )
    return ChatService(retriever=retriever, llm_client=get_llm_client(config), config=config)
