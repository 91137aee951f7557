"""Collaborator interfaces and their default implementations."""
from __future__ import annotations

from .base import EmbeddingProvider, FuzzyMatcher, Reranker
from .fuzzy import RapidFuzzMatcher
from .mock_embedding import MockEmbeddingProvider
from .rerank import CrossEncoderReranker, NoOpReranker, get_reranker, reset_reranker_cache

__all__ = [
    "CrossEncoderReranker",
    "EmbeddingProvider",
    "FuzzyMatcher",
    "MockEmbeddingProvider",
    "NoOpReranker",
    "RapidFuzzMatcher",
    "Reranker",
    "get_reranker",
    "reset_reranker_cache",
]
