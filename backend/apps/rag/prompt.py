"""
Prompt building for grounded RAG answers.

The system message pins the model to the supplied context and to a fixed
citation marker format that apps.rag.citations parses back out of the answer.
"""
from typing import List

from apps.rag.llm_client import ChatMessage
from apps.rag.retrieval import RetrievedChunk

CONTEXT_DELIMITER = "---"

SYSTEM_PROMPT = """You are a helpful assistant that answers questions based ONLY on the provided context documents.

CRITICAL RULES:
1. You MUST answer using ONLY the information provided in the context below.
2. If the answer is not in the context, you MUST say "I don't know" or "The information is not available in the provided documents."
3. DO NOT use any prior knowledge or information outside the provided context.
4. When you reference information from the context, cite the source using the citation format provided.
5. Be concise and accurate. If you're uncertain, say so.

You will receive:
- A user question
- Relevant context chunks from documents with citations

Format your response as:
1. Your answer based on the context
2. Citations in the format: [Document: Title, Chunk: N, Page: X] (omit ", Page: X" if no page is given)"""

USER_PROMPT_FOOTER = (
    "Please answer the question using ONLY the information from the context above. "
    "If the answer is not in the context, say you don't know. "
    "Include citations for any information you use."
)


def format_context_block(position: int, chunk: RetrievedChunk) -> str:
    """
    Render one chunk for the user message.

    Format:
    [Context 1]
    Document: report.pdf
    Chunk Index: 3, Page: 2
    Content: The text content here...

    ---
    """
    page_info = f", Page: {chunk.page}" if chunk.page is not None else ""
    return (
        f"[Context {position}]\n"
        f"Document: {chunk.document_title}\n"
        f"Chunk Index: {chunk.chunk_index}{page_info}\n"
        f"Content: {chunk.content}\n"
        f"\n"
        f"{CONTEXT_DELIMITER}"
    )


def build_user_prompt(question: str, chunks: List[RetrievedChunk]) -> str:
    context = "\n\n".join(
        format_context_block(i, chunk) for i, chunk in enumerate(chunks, 1)
    )
    return f"Question: {question}\n\nContext:\n{context}\n\n{USER_PROMPT_FOOTER}"


def build_chat_messages(question: str, chunks: List[RetrievedChunk]) -> List[ChatMessage]:
    """
    Build the system + user messages for one grounded answer.

    Callers handle the no-context case before getting here.
    """
    return [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(role="user", content=build_user_prompt(question, chunks)),
    ]
