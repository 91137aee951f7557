"""Turns workspace documents into persisted chunk + embedding records."""
from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Optional

from notecontext.chunker import chunk_text
from notecontext.models import ChunkRecord, ProcessSummary
from notecontext.providers.base import EmbeddingProvider
from notecontext.settings import RagConfig
from notecontext.telemetry import (
    emit_exception,
    emit_index_event,
    emit_vectorstore_event,
    traced_duration,
)
from notecontext.vectorstore import ChunkStore
from notecontext.workspace import DOCUMENT_EXTENSION, Workspace, WorkspaceError, document_filename

LOGGER = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class DocumentProcessor:
    """Keeps the chunk store in sync with workspace documents.

    A document is always fully replaced: its old chunks are deleted before the
    new ones are embedded and inserted, one chunk at a time in order.
    """

    def __init__(
        self,
        *,
        workspace: Workspace,
        embedding_provider: EmbeddingProvider,
        chunk_store: ChunkStore,
        config: Optional[RagConfig] = None,
    ) -> None:
        self._workspace = workspace
        self._embedding_provider = embedding_provider
        self._store = chunk_store
        self._config = config or RagConfig()

    async def process_one_document(
        self,
        path: str | Path,
        content: Optional[str] = None,
        *,
        config: Optional[RagConfig] = None,
    ) -> bool:
        """Rechunk and re-embed one document.

        Returns ``False`` only when the content or the chunk store could not be
        used; chunks whose embedding fails are skipped and still count as success.
        """

        config = config or self._config
        filename = document_filename(path)
        started = time.perf_counter()

        if content is None:
            try:
                content = await self._workspace.read_text(path)
            except (OSError, UnicodeDecodeError, WorkspaceError) as error:
                LOGGER.error("Failed to read document %s: %s", path, error)
                emit_exception(module=f"{__name__}.read", error=error, filename=filename)
                return False

        try:
            chunks = chunk_text(content, config.chunk_size, config.chunk_overlap)
        except ValueError as error:
            emit_exception(
                module=f"{__name__}.chunk",
                error=error,
                filename=filename,
                suggestion="Check ragChunkSize and ragChunkOverlap",
            )
            return False
        embedded = 0
        try:
            with self._store.reindex(filename) as transaction:
                await asyncio.to_thread(transaction.delete_old)
                for index, chunk in enumerate(chunks):
                    embedding = await self._embed(chunk, config)
                    if not embedding:
                        LOGGER.error(
                            "Could not embed chunk %d of %s; skipping it", index + 1, filename
                        )
                        continue
                    record = ChunkRecord(
                        filename=filename,
                        chunk_id=index,
                        content=chunk,
                        embedding=embedding,
                        updated_at=_now_ms(),
                    )
                    await asyncio.to_thread(transaction.insert, record)
                    embedded += 1
        except Exception as error:
            LOGGER.error("Failed to store chunks of %s: %s", filename, error)
            emit_vectorstore_event(
                "vectorstore.reindex",
                backend=self._store.backend_name,
                filename=filename,
                count=embedded,
                error=error,
            )
            return False

        emit_vectorstore_event(
            "vectorstore.reindex",
            backend=self._store.backend_name,
            filename=filename,
            count=embedded,
        )

        emit_index_event(
            "index.file.complete",
            filename=filename,
            chunks=len(chunks),
            embedded=embedded,
            skipped=len(chunks) - embedded,
            duration_ms=(time.perf_counter() - started) * 1000.0,
        )
        return True

    async def process_all_documents(self, *, config: Optional[RagConfig] = None) -> ProcessSummary:
        """Process every workspace document in sequence.

        A failing file is counted and the batch moves on. Failing to enumerate
        the workspace propagates.
        """

        config = config or self._config
        summary = ProcessSummary()
        with traced_duration(
            "index.batch", logger=LOGGER, root=str(self._workspace.root)
        ) as outcome:
            paths = await self._workspace.list_documents()
            for path in paths:
                summary.total += 1
                try:
                    succeeded = await self.process_one_document(path, config=config)
                except Exception:
                    LOGGER.exception("Unexpected error while processing %s", path)
                    succeeded = False
                if succeeded:
                    summary.success += 1
                else:
                    summary.failed += 1
            outcome.update(summary.as_dict())

        LOGGER.info(
            "Processed %d documents: %d succeeded, %d failed",
            summary.total,
            summary.success,
            summary.failed,
        )
        return summary

    async def handle_file_update(
        self,
        filename: str,
        content: str,
        *,
        config: Optional[RagConfig] = None,
    ) -> None:
        """Reindex an edited document; non-markdown files are ignored."""

        if not filename.endswith(DOCUMENT_EXTENSION):
            return
        try:
            await self.process_one_document(filename, content, config=config)
        except Exception:
            LOGGER.exception("Failed to update chunks of %s", filename)

    async def check_embedding_available(self, *, config: Optional[RagConfig] = None) -> bool:
        """Advisory probe; the provider may still fail on the next call."""

        config = config or self._config
        try:
            return await asyncio.wait_for(
                self._embedding_provider.available(), timeout=config.call_timeout_seconds
            )
        except Exception:
            LOGGER.warning("Embedding model check failed", exc_info=True)
            return False

    async def _embed(self, text: str, config: RagConfig) -> Optional[list[float]]:
        try:
            return await asyncio.wait_for(
                self._embedding_provider.embed(text), timeout=config.call_timeout_seconds
            )
        except asyncio.TimeoutError:
            LOGGER.warning("Embedding request timed out after %.1fs", config.call_timeout_seconds)
        except Exception:
            LOGGER.warning("Embedding request failed", exc_info=True)
        return None


__all__ = ["DocumentProcessor"]
