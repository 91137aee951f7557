"""Context assembly: fuzzy and vector retrieval merged into one prompt block."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Iterable, List, Optional, Sequence, Tuple

from notecontext.models import ContextCandidate, Document, FuzzyResult, Keyword, SearchItem
from notecontext.providers.base import EmbeddingProvider, FuzzyMatcher, Reranker
from notecontext.providers.fuzzy import RapidFuzzMatcher
from notecontext.providers.rerank import NoOpReranker
from notecontext.settings import RagConfig
from notecontext.telemetry import emit_exception, emit_retriever_event
from notecontext.vectorstore import ChunkStore
from notecontext.workspace import Workspace

LOGGER = logging.getLogger(__name__)

FUZZY_THRESHOLD = 0.3
FUZZY_KEYS = ("title", "article")
SNIPPET_RADIUS = 250
BLOCK_SEPARATOR = "\n---\n\n"


def sort_keywords(keywords: Iterable[Keyword]) -> List[Keyword]:
    """Heaviest keyword first; equal weights keep their input order."""

    return sorted(keywords, key=lambda keyword: keyword.weight, reverse=True)


def snippet_window(content: str, indices: Tuple[int, int]) -> str:
    """Return the text around an inclusive ``(start, end)`` match span."""

    first_start, first_end = indices
    start = max(0, first_start - SNIPPET_RADIUS)
    end = min(len(content), first_end + SNIPPET_RADIUS)
    return content[start:end]


def deduplicate(candidates: Iterable[ContextCandidate]) -> List[ContextCandidate]:
    seen: set[str] = set()
    unique: List[ContextCandidate] = []
    for candidate in candidates:
        identity = candidate.identity
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(candidate)
    return unique


def rank(candidates: Iterable[ContextCandidate]) -> List[ContextCandidate]:
    return sorted(candidates, key=lambda candidate: candidate.score, reverse=True)


def format_context(candidates: Sequence[ContextCandidate]) -> str:
    blocks = [f"File: {candidate.filename}\n{candidate.content}\n" for candidate in candidates]
    return BLOCK_SEPARATOR.join(blocks)


def assemble_context(candidates: Sequence[ContextCandidate], result_count: int) -> str:
    """Deduplicate, rank and truncate merged candidates into the final text."""

    if not candidates:
        return ""
    selected = rank(deduplicate(candidates))[:result_count]
    return format_context(selected)


def _search_items(documents: Sequence[Document]) -> List[SearchItem]:
    return [
        SearchItem(id=str(document.path), title=document.filename, article=document.content)
        for document in documents
    ]


class ContextAssembler:
    """Builds the context block for a weighted keyword query.

    Every keyword contributes fuzzy hits over whole documents and vector hits
    over stored chunks. A failing collaborator only removes its own
    candidates; the assembled result is empty only when nothing was found or
    assembly itself failed.
    """

    def __init__(
        self,
        *,
        workspace: Workspace,
        embedding_provider: EmbeddingProvider,
        chunk_store: ChunkStore,
        fuzzy_matcher: Optional[FuzzyMatcher] = None,
        reranker: Optional[Reranker] = None,
        config: Optional[RagConfig] = None,
    ) -> None:
        self._workspace = workspace
        self._embedding_provider = embedding_provider
        self._store = chunk_store
        self._fuzzy = fuzzy_matcher or RapidFuzzMatcher()
        self._reranker = reranker or NoOpReranker()
        self._config = config or RagConfig()

    async def build_context(
        self, keywords: Sequence[Keyword], config: Optional[RagConfig] = None
    ) -> str:
        if not keywords:
            return ""
        config = config or self._config
        try:
            ordered = sort_keywords(keywords)
            items = await self._load_search_items()
            fuzzy_batches, vector_batches = await asyncio.gather(
                asyncio.gather(*(self._fuzzy_candidates(items, kw, config) for kw in ordered)),
                asyncio.gather(*(self._vector_candidates(kw, config) for kw in ordered)),
            )
            merged: List[ContextCandidate] = []
            for batch in fuzzy_batches:
                merged.extend(batch)
            for batch in vector_batches:
                merged.extend(batch)
            return assemble_context(merged, config.result_count)
        except Exception as error:
            LOGGER.error("Failed to build context: %s", error)
            emit_exception(module=__name__, error=error)
            return ""

    async def _load_search_items(self) -> List[SearchItem]:
        try:
            documents = await self._workspace.load_documents()
        except Exception:
            LOGGER.error("Failed to load documents for fuzzy search", exc_info=True)
            return []
        return _search_items(documents)

    async def _fuzzy_candidates(
        self, items: List[SearchItem], keyword: Keyword, config: RagConfig
    ) -> List[ContextCandidate]:
        if not items:
            return []
        started = time.perf_counter()
        try:
            results: List[FuzzyResult] = await asyncio.wait_for(
                asyncio.to_thread(
                    self._fuzzy.search,
                    items,
                    keyword.text,
                    keys=list(FUZZY_KEYS),
                    threshold=FUZZY_THRESHOLD,
                    include_score=True,
                    include_matches=True,
                ),
                timeout=config.call_timeout_seconds,
            )
        except Exception:
            LOGGER.error("Fuzzy search failed for keyword %r", keyword.text, exc_info=True)
            return []

        candidates: List[ContextCandidate] = []
        for result in results:
            if result.score <= 0:
                continue
            article_match = next((m for m in result.matches if m.key == "article"), None)
            if article_match is None or not article_match.indices:
                continue
            candidates.append(
                ContextCandidate(
                    filename=result.item.title,
                    content=snippet_window(result.item.article, article_match.indices[0]),
                    score=result.score * keyword.weight,
                    keyword=keyword.text,
                    source="fuzzy",
                )
            )
        emit_retriever_event(
            "retriever.fuzzy",
            keyword=keyword.text,
            weight=keyword.weight,
            results=len(candidates),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return candidates

    async def _vector_candidates(self, keyword: Keyword, config: RagConfig) -> List[ContextCandidate]:
        started = time.perf_counter()
        timeout = config.call_timeout_seconds
        try:
            embedding = await asyncio.wait_for(
                self._embedding_provider.embed(keyword.text), timeout=timeout
            )
        except Exception:
            LOGGER.error("Failed to embed keyword %r", keyword.text, exc_info=True)
            return []
        if not embedding:
            return []

        try:
            hits = await asyncio.wait_for(
                asyncio.to_thread(
                    self._store.query_similar,
                    embedding,
                    config.result_count,
                    config.similarity_threshold,
                ),
                timeout=timeout,
            )
        except Exception:
            LOGGER.error("Similarity search failed for keyword %r", keyword.text, exc_info=True)
            return []
        if not hits:
            return []

        try:
            hits = await asyncio.wait_for(self._reranker.rerank(keyword.text, hits), timeout=timeout)
        except Exception:
            LOGGER.warning(
                "Reranking failed for keyword %r; keeping similarity order",
                keyword.text,
                exc_info=True,
            )

        candidates = [
            ContextCandidate(
                filename=hit.filename,
                content=hit.content,
                score=hit.similarity * keyword.weight,
                keyword=keyword.text,
                source="vector",
            )
            for hit in hits
        ]
        emit_retriever_event(
            "retriever.vector",
            keyword=keyword.text,
            weight=keyword.weight,
            results=len(candidates),
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return candidates


__all__ = [
    "BLOCK_SEPARATOR",
    "ContextAssembler",
    "FUZZY_THRESHOLD",
    "SNIPPET_RADIUS",
    "assemble_context",
    "deduplicate",
    "format_context",
    "rank",
    "snippet_window",
    "sort_keywords",
]
