"""
RAG (Retrieval Augmented Generation) app.

Provides:
- Query and chunk embedding (Ollama or OpenAI-compatible API)
- User-scoped, document-filtered vector retrieval
- Grounding prompt construction
- Answer generation and citation extraction
"""
