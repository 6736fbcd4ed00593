"""
Chunk Store Factory

Selects the backend (pgvector | memory) from settings. The rest of the app
only imports get_chunk_store() and never touches the concrete classes.

Usage in a FastAPI route (via dependency):
    store: ChunkStoreBase = Depends(get_chunk_store)
"""

from __future__ import annotations

from functools import lru_cache

from caredocs.core.config import settings
from caredocs.vectorstore.base import ChunkStoreBase


@lru_cache(maxsize=1)
def get_chunk_store() -> ChunkStoreBase:
    """
    Return the process-wide chunk store for the configured backend.
    Both backends are safe to share across requests.
    """
    backend = settings.chunk_store_backend.lower()

    if backend == "pgvector":
        from caredocs.vectorstore.pgvector_store import PgVectorChunkStore
        return PgVectorChunkStore()

    if backend == "memory":
        from caredocs.vectorstore.memory_store import InMemoryChunkStore
        return InMemoryChunkStore(dimensions=settings.embedding_dimensions)

    raise ValueError(
        f"Unknown chunk store backend: '{backend}'. "
        f"Valid options: 'pgvector', 'memory'"
    )
