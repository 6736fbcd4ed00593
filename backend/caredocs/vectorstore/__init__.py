from caredocs.vectorstore.base import ChunkMatch, ChunkRecord, ChunkStoreBase, ChunkStoreError
from caredocs.vectorstore.factory import get_chunk_store

__all__ = ["ChunkStoreBase", "ChunkStoreError", "ChunkRecord", "ChunkMatch", "get_chunk_store"]
