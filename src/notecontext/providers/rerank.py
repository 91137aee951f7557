"""Rerank providers: an identity default and a cross-encoder model."""
from __future__ import annotations

import asyncio
import logging
import math
import os
from functools import lru_cache
from typing import List, Sequence

from notecontext.models import SimilarChunk

from .base import Reranker

LOGGER = logging.getLogger(__name__)

_PROBE_QUERY = "probe query"
_PROBE_DOCUMENTS = ("first probe document", "second probe document")


def _sigmoid(x: float) -> float:
    # Cross-encoder logits are unbounded; map them into [0, 1] like cosine similarity.
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


class NoOpReranker(Reranker):
    """Keep the similarity search order unchanged."""

    async def rerank(self, query: str, documents: Sequence[SimilarChunk]) -> List[SimilarChunk]:
        return list(documents)


class CrossEncoderReranker(Reranker):
    """Rescore hits with a sentence-transformers ``CrossEncoder``.

    The model's logit, squashed into ``[0, 1]``, replaces ``similarity`` and
    hits are returned best first. The model is loaded on first use.
    """

    def __init__(self, model_name: str, *, device: str | None = None) -> None:
        self.model_name = model_name
        self._device = device
        self._model = None

    def _load(self):
        if self._model is None:
            from sentence_transformers import CrossEncoder

            self._model = CrossEncoder(self.model_name, device=self._device)
        return self._model

    def _score(self, query: str, contents: Sequence[str]) -> List[float]:
        model = self._load()
        scores = model.predict([(query, content) for content in contents], show_progress_bar=False)
        return [_sigmoid(float(score)) for score in scores]

    async def rerank(self, query: str, documents: Sequence[SimilarChunk]) -> List[SimilarChunk]:
        if not documents:
            return list(documents)
        scores = await asyncio.to_thread(self._score, query, [doc.content for doc in documents])
        rescored = [
            SimilarChunk(id=doc.id, filename=doc.filename, content=doc.content, similarity=score)
            for doc, score in zip(documents, scores)
        ]
        return sorted(rescored, key=lambda doc: doc.similarity, reverse=True)

    async def available(self) -> bool:
        try:
            scores = await asyncio.to_thread(self._score, _PROBE_QUERY, list(_PROBE_DOCUMENTS))
        except Exception:
            LOGGER.warning("Rerank model %s is not usable", self.model_name, exc_info=True)
            return False
        return len(scores) == len(_PROBE_DOCUMENTS)


@lru_cache()
def get_reranker() -> Reranker:
    """Return the reranker selected by ``RERANK_MODEL`` (identity when unset)."""

    model_name = (os.getenv("RERANK_MODEL") or "").strip()
    if not model_name:
        return NoOpReranker()
    return CrossEncoderReranker(model_name, device=os.getenv("RERANK_DEVICE") or None)


def reset_reranker_cache() -> None:
    get_reranker.cache_clear()  # type: ignore[attr-defined]


__all__ = ["CrossEncoderReranker", "NoOpReranker", "get_reranker", "reset_reranker_cache"]
