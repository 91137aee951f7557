"""Sentence-transformers embeddings for note chunks and query keywords."""
from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import threading
import time
from functools import lru_cache
from typing import List, Optional, Sequence

import numpy as np

from notecontext.providers.base import EmbeddingProvider
from notecontext.telemetry import emit_embeddings_event

DEFAULT_MODEL_NAME = "sentence-transformers/all-MiniLM-L6-v2"
FALLBACK_MODEL_NAME = "deterministic-fallback"
FALLBACK_DIMENSION = 384

LOGGER = logging.getLogger(__name__)


def _install_heavy_enabled() -> bool:
    flag = os.getenv("INSTALL_HEAVY", "true").strip().lower()
    return flag not in {"0", "false", "no", "off"}


def hashed_embedding(text: str, dimension: int = FALLBACK_DIMENSION) -> List[float]:
    """Unit vector derived from the SHA-256 of *text*; equal texts map to equal vectors."""

    seed = int.from_bytes(hashlib.sha256(text.encode("utf-8")).digest()[:8], "big")
    vector = np.random.default_rng(seed).standard_normal(dimension)
    return (vector / np.linalg.norm(vector)).tolist()


class EmbeddingModel:
    """Blocking embedding backend.

    The sentence-transformers model named by ``EMBEDDING_MODEL_PATH`` is loaded
    on first use. With ``INSTALL_HEAVY=false``, or when the model cannot be
    loaded, texts are embedded with :func:`hashed_embedding` instead so the
    service keeps working offline.
    """

    def __init__(self, model_name_or_path: str | None = None, *, device: str | None = None) -> None:
        self._model_path = model_name_or_path or os.getenv("EMBEDDING_MODEL_PATH", DEFAULT_MODEL_NAME)
        self._device = device or os.getenv("EMBEDDING_DEVICE") or None
        self._model = None
        self._use_fallback = not _install_heavy_enabled()
        self._dimension = FALLBACK_DIMENSION
        self._load_lock = threading.Lock()
        if self._use_fallback:
            LOGGER.info("INSTALL_HEAVY is disabled; using deterministic fallback embeddings.")

    @property
    def model_name(self) -> str:
        return FALLBACK_MODEL_NAME if self._use_fallback else self._model_path

    @property
    def dimension(self) -> int:
        self._ensure_loaded()
        return self._dimension

    def _ensure_loaded(self) -> None:
        if self._use_fallback or self._model is not None:
            return
        with self._load_lock:
            if self._model is not None or self._use_fallback:
                return
            from sentence_transformers import SentenceTransformer

            try:
                model = SentenceTransformer(self._model_path, device=self._device)
            except Exception as error:
                LOGGER.warning(
                    "Failed to load embedding model '%s': %s. Using deterministic fallback embeddings.",
                    self._model_path,
                    error,
                )
                self._use_fallback = True
                return
            self._dimension = int(model.get_sentence_embedding_dimension())
            self._model = model

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []
        self._ensure_loaded()
        started = time.perf_counter()
        try:
            if self._model is None:
                vectors = [hashed_embedding(str(text), self._dimension) for text in texts]
            else:
                encoded = self._model.encode(
                    list(texts),
                    convert_to_numpy=True,
                    show_progress_bar=False,
                    normalize_embeddings=True,
                )
                vectors = encoded.tolist()
        except Exception as error:
            emit_embeddings_event(
                model=self.model_name,
                count=len(texts),
                duration_ms=(time.perf_counter() - started) * 1000.0,
                errors=[str(error)],
            )
            raise

        emit_embeddings_event(
            model=self.model_name,
            count=len(texts),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return vectors


class ModelEmbeddingProvider(EmbeddingProvider):
    """Async :class:`EmbeddingProvider` over a blocking :class:`EmbeddingModel`.

    Failures are logged and reported as ``None`` so callers can skip the text.
    """

    def __init__(self, model: Optional[EmbeddingModel] = None) -> None:
        self._model = model

    @property
    def model(self) -> EmbeddingModel:
        if self._model is None:
            self._model = get_embedding_model()
        return self._model

    @property
    def model_name(self) -> str:  # type: ignore[override]
        return self.model.model_name

    async def embed(self, text: str) -> Optional[List[float]]:
        if not text:
            return None
        try:
            vectors = await asyncio.to_thread(self.model.embed_texts, [text])
        except Exception:
            LOGGER.exception("Embedding request failed")
            return None
        if not vectors or not vectors[0]:
            return None
        return list(vectors[0])


@lru_cache()
def get_embedding_model() -> EmbeddingModel:
    """Return a cached embedding model instance."""

    return EmbeddingModel()


def reset_embedding_model_cache() -> None:
    """Clear the cached embedding model instance (primarily for testing)."""

    get_embedding_model.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "DEFAULT_MODEL_NAME",
    "EmbeddingModel",
    "FALLBACK_DIMENSION",
    "FALLBACK_MODEL_NAME",
    "ModelEmbeddingProvider",
    "get_embedding_model",
    "hashed_embedding",
    "reset_embedding_model_cache",
]
