"""
RAG package — scoped retrieval and the assistant context block.
"""

from caredocs.rag.context import format_context, used_rag
from caredocs.rag.retriever import CaregiverScopedRetriever, DocumentRetriever

__all__ = [
    "CaregiverScopedRetriever",
    "DocumentRetriever",
    "format_context",
    "used_rag",
]
