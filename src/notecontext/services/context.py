from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Sequence

from notecontext.assembler import ContextAssembler
from notecontext.embeddings import ModelEmbeddingProvider
from notecontext.logging_config import AUDIT_LOGGER_NAME
from notecontext.models import Keyword, ProcessSummary
from notecontext.processor import DocumentProcessor
from notecontext.providers import EmbeddingProvider, FuzzyMatcher, Reranker, get_reranker
from notecontext.settings import RagConfig, SettingsStore, get_settings_store, load_rag_config
from notecontext.telemetry import emit_exception
from notecontext.vectorstore import ChunkStore, get_chunk_store
from notecontext.workspace import Workspace, document_filename, get_workspace

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


@dataclass(slots=True)
class ProbeResult:
    """Advisory availability of the model collaborators."""

    embedding: bool
    rerank: bool


class ContextService:
    """High level orchestration of indexing and context retrieval for a workspace.

    Retrieval settings are read from the settings store at the start of every
    operation, so a change made between two calls applies to the second one.
    """

    def __init__(
        self,
        *,
        workspace: Workspace | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        chunk_store: ChunkStore | None = None,
        reranker: Reranker | None = None,
        fuzzy_matcher: FuzzyMatcher | None = None,
        settings_store: SettingsStore | None = None,
    ) -> None:
        self.workspace = workspace or get_workspace()
        self.embedding_provider = embedding_provider or ModelEmbeddingProvider()
        self.chunk_store = chunk_store or get_chunk_store()
        self.reranker = reranker or get_reranker()
        self._settings_store = settings_store or get_settings_store()
        self.processor = DocumentProcessor(
            workspace=self.workspace,
            embedding_provider=self.embedding_provider,
            chunk_store=self.chunk_store,
        )
        self.assembler = ContextAssembler(
            workspace=self.workspace,
            embedding_provider=self.embedding_provider,
            chunk_store=self.chunk_store,
            fuzzy_matcher=fuzzy_matcher,
            reranker=self.reranker,
        )

    def current_config(self) -> RagConfig:
        return load_rag_config(self._settings_store)

    async def build_context(self, keywords: Sequence[Keyword]) -> str:
        if not keywords:
            return ""
        started = time.perf_counter()
        try:
            config = self.current_config()
        except Exception as error:
            LOGGER.error("Failed to read retrieval settings: %s", error)
            emit_exception(module=f"{__name__}.settings", error=error)
            return ""
        context = await self.assembler.build_context(keywords, config)
        AUDIT_LOGGER.info(
            {
                "event": "context",
                "keywords": [{"text": kw.text, "weight": kw.weight} for kw in keywords],
                "result_count": config.result_count,
                "context_chars": len(context),
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
            }
        )
        return context

    async def process_document(self, path: str | Path, content: Optional[str] = None) -> bool:
        config = self.current_config()
        success = await self.processor.process_one_document(path, content, config=config)
        AUDIT_LOGGER.info(
            {"event": "index", "filename": document_filename(path), "success": success}
        )
        return success

    async def process_all_documents(self) -> ProcessSummary:
        config = self.current_config()
        summary = await self.processor.process_all_documents(config=config)
        AUDIT_LOGGER.info({"event": "reindex", **summary.as_dict()})
        return summary

    async def handle_file_update(self, filename: str, content: str) -> None:
        await self.processor.handle_file_update(filename, content, config=self.current_config())

    async def check_embedding_available(self) -> bool:
        return await self.processor.check_embedding_available(config=self.current_config())

    async def check_rerank_available(self) -> bool:
        """Advisory probe; ``False`` when no rerank model is configured."""

        try:
            return await self.reranker.available()
        except Exception:
            LOGGER.warning("Rerank model check failed", exc_info=True)
            return False

    async def probes(self) -> ProbeResult:
        return ProbeResult(
            embedding=await self.check_embedding_available(),
            rerank=await self.check_rerank_available(),
        )


@lru_cache()
def get_context_service() -> ContextService:
    """Return the service wired from the environment."""

    return ContextService()


def reset_context_service_cache() -> None:
    get_context_service.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "ContextService",
    "ProbeResult",
    "get_context_service",
    "reset_context_service_cache",
]
