"""Base provider interfaces for embeddings, reranking and fuzzy matching."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from notecontext.models import FuzzyResult, SearchItem, SimilarChunk

__all__ = ["EmbeddingProvider", "FuzzyMatcher", "Reranker"]

PROBE_TEXT = "embedding model probe"


class EmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    model_name = "unknown"

    @abstractmethod
    async def embed(self, text: str) -> Optional[List[float]]:
        """Return the embedding of *text*, or ``None`` when none is available."""

    async def available(self) -> bool:
        """Advisory check; a later :meth:`embed` call may still return ``None``."""

        return bool(await self.embed(PROBE_TEXT))


class Reranker(ABC):
    """Optional capability that reorders similarity search hits for a query."""

    @abstractmethod
    async def rerank(self, query: str, documents: Sequence[SimilarChunk]) -> List[SimilarChunk]:
        """Return *documents* reordered (and possibly rescored) for *query*."""

    async def available(self) -> bool:
        """Advisory check; the model may still fail on the next call."""

        return False


class FuzzyMatcher(ABC):
    """Approximate string matching over :class:`SearchItem` fields."""

    @abstractmethod
    def search(
        self,
        items: Sequence[SearchItem],
        query: str,
        *,
        keys: Sequence[str],
        threshold: float,
        include_score: bool = True,
        include_matches: bool = True,
    ) -> List[FuzzyResult]:
        """Return hits ranked best first; ``score`` is in ``(0, 1]``, higher is better."""
