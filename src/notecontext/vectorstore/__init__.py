"""Chunk store backends selected through configuration."""

from __future__ import annotations

import os
from functools import lru_cache

from .base import ChunkStore, ReindexTransaction
from .errors import ReindexStateError, VectorStoreUnavailableError
from .memory_store import InMemoryChunkStore, PersistentInMemoryChunkStore, cosine_similarity


@lru_cache()
def get_chunk_store() -> ChunkStore:
    """Return a lazily initialised chunk store based on ``VECTOR_STORE``."""

    backend = os.getenv("VECTOR_STORE", "mock").strip().lower()

    if backend == "mock":
        persist_dir = os.getenv("CHUNK_STORE_PERSIST_DIR")
        if persist_dir:
            return PersistentInMemoryChunkStore(persist_dir)
        return InMemoryChunkStore()

    if backend == "chroma":
        try:
            from .chroma_store import ChromaChunkStore
        except ImportError as exc:  # pragma: no cover - depends on installed extras
            raise VectorStoreUnavailableError(
                "VECTOR_STORE=chroma requires the 'chromadb' package to be installed",
                cause=exc,
            ) from exc

        persist_dir = os.getenv("CHROMA_PERSIST_DIR", "chroma_db")
        collection = os.getenv("CHROMA_COLLECTION", "note_chunks")
        return ChromaChunkStore(persist_dir, collection_name=collection)

    raise ValueError(f"Unsupported VECTOR_STORE backend: {backend!r}")


def reset_chunk_store_cache() -> None:
    """Clear the cached chunk store (primarily for testing)."""

    get_chunk_store.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "ChunkStore",
    "InMemoryChunkStore",
    "PersistentInMemoryChunkStore",
    "ReindexStateError",
    "ReindexTransaction",
    "VectorStoreUnavailableError",
    "cosine_similarity",
    "get_chunk_store",
    "reset_chunk_store_cache",
]
