"""Shared fixtures: isolated workspace, in-memory store and fake collaborators."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from notecontext.embeddings import reset_embedding_model_cache
from notecontext.providers import EmbeddingProvider, reset_reranker_cache
from notecontext.services.context import reset_context_service_cache
from notecontext.vectorstore import InMemoryChunkStore, reset_chunk_store_cache
from notecontext.workspace import Workspace, reset_workspace_cache


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("NOTECONTEXT_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("NOTECONTEXT_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("INSTALL_HEAVY", "false")
    monkeypatch.setenv("VECTOR_STORE", "mock")
    for name in (
        "NOTECONTEXT_WORKSPACE",
        "NOTECONTEXT_SETTINGS",
        "CHUNK_STORE_PERSIST_DIR",
        "RERANK_MODEL",
        "RAG_CHUNK_SIZE",
        "RAG_CHUNK_OVERLAP",
        "RAG_RESULT_COUNT",
        "RAG_SIMILARITY_THRESHOLD",
        "RAG_CALL_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
    _reset_caches()
    yield
    _reset_caches()


def _reset_caches() -> None:
    reset_workspace_cache()
    reset_chunk_store_cache()
    reset_embedding_model_cache()
    reset_reranker_cache()
    reset_context_service_cache()


class KeywordEmbedder(EmbeddingProvider):
    """Maps texts onto fixed axes by the topic words they contain."""

    model_name = "keyword-axes"

    def __init__(self, topics: Optional[Dict[str, int]] = None, *, dimension: int = 2) -> None:
        self.topics = topics or {"anxiety": 0}
        self.dimension = dimension
        self.calls: List[str] = []
        self.fail_on: set[str] = set()
        self.delay: float = 0.0

    def vector(self, text: str) -> List[float]:
        vector = [0.0] * self.dimension
        lowered = text.lower()
        for topic, axis in self.topics.items():
            if topic in lowered:
                vector[axis] = 1.0
                return vector
        vector[-1] = 1.0
        return vector

    async def embed(self, text: str) -> Optional[List[float]]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if any(marker in text for marker in self.fail_on):
            return None
        if not text:
            return None
        return self.vector(text)


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def notes_root(tmp_path: Path) -> Path:
    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture
def workspace(notes_root: Path) -> Workspace:
    return Workspace(notes_root, is_custom=True)


@pytest.fixture
def write_note(notes_root: Path):
    def _write(relative: str, content: str) -> Path:
        path = notes_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
