"""Mock embedding provider for tests and offline development."""
from __future__ import annotations

import hashlib
import random
from typing import List, Optional

from .base import EmbeddingProvider


class MockEmbeddingProvider(EmbeddingProvider):
    """Return deterministic embedding vectors derived from each text."""

    model_name = "mock"

    def __init__(self, dimension: int = 8) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be a positive integer")
        self.dimension = dimension

    def vector_for(self, text: str) -> List[float]:
        seed = hashlib.sha256(text.encode("utf-8")).hexdigest()
        rng = random.Random(seed)
        return [(rng.random() * 2.0) - 1.0 for _ in range(self.dimension)]

    async def embed(self, text: str) -> Optional[List[float]]:
        if not text:
            return None
        return self.vector_for(text)
