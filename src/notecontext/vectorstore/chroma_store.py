"""Chroma-backed chunk store."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Sequence

import chromadb

from notecontext.models import ChunkRecord, SimilarChunk

from .base import ChunkStore
from .errors import VectorStoreUnavailableError
from .memory_store import chunk_uid

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from chromadb.api import ClientAPI
    from chromadb.api.models.Collection import Collection

LOGGER = logging.getLogger(__name__)

DEFAULT_COLLECTION_NAME = "note_chunks"


class ChromaChunkStore(ChunkStore):
    """Persist chunk records in a Chroma collection using cosine distance.

    Similarity is reported as ``1 - distance``.
    """

    backend_name = "chroma"

    def __init__(
        self,
        persist_dir: str | Path | None = None,
        *,
        collection_name: str = DEFAULT_COLLECTION_NAME,
        client: Optional["ClientAPI"] = None,
    ) -> None:
        self.collection_name = collection_name
        self.persist_dir = Path(persist_dir) if persist_dir is not None else None
        try:
            if client is not None:
                self._client = client
            elif self.persist_dir is not None:
                self.persist_dir.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(self.persist_dir))
            else:
                self._client = chromadb.EphemeralClient()
            self._collection: "Collection" = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        except Exception as exc:  # pragma: no cover - depends on chromadb runtime
            raise VectorStoreUnavailableError(
                "Failed to initialise Chroma collection",
                cause=exc,
            ) from exc

    def upsert(self, record: ChunkRecord) -> None:
        try:
            self._collection.upsert(
                ids=[chunk_uid(record.filename, record.chunk_id)],
                embeddings=[[float(value) for value in record.embedding]],
                documents=[record.content],
                metadatas=[
                    {
                        "filename": record.filename,
                        "chunk_id": int(record.chunk_id),
                        "updated_at": int(record.updated_at),
                    }
                ],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to upsert chunk into Chroma", cause=exc) from exc

    def delete_by_filename(self, filename: str) -> int:
        try:
            existing = self._collection.get(where={"filename": filename}, include=[])
            ids = list(existing.get("ids") or [])
            if ids:
                self._collection.delete(ids=ids)
        except Exception as exc:
            raise VectorStoreUnavailableError(
                f"Failed to delete chunks of {filename!r} from Chroma", cause=exc
            ) from exc
        return len(ids)

    def query_similar(
        self,
        embedding: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> List[SimilarChunk]:
        if top_k <= 0:
            return []
        try:
            available = self._collection.count()
            if available == 0:
                return []
            result = self._collection.query(
                query_embeddings=[[float(value) for value in embedding]],
                n_results=min(top_k, available),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError("Chroma similarity query failed", cause=exc) from exc

        ids = (result.get("ids") or [[]])[0]
        documents = (result.get("documents") or [[]])[0]
        metadatas = (result.get("metadatas") or [[]])[0]
        distances = (result.get("distances") or [[]])[0]

        hits: List[SimilarChunk] = []
        for chunk_id, document, metadata, distance in zip(ids, documents, metadatas, distances):
            similarity = 1.0 - float(distance if distance is not None else 1.0)
            if similarity < threshold:
                continue
            metadata = metadata or {}
            hits.append(
                SimilarChunk(
                    id=str(chunk_id),
                    filename=str(metadata.get("filename", "")),
                    content=document or "",
                    similarity=similarity,
                )
            )
        return hits

    def list_chunks(self, filename: str) -> List[ChunkRecord]:
        try:
            records = self._collection.get(
                where={"filename": filename},
                include=["documents", "metadatas", "embeddings"],
            )
        except Exception as exc:
            raise VectorStoreUnavailableError(
                f"Failed to read chunks of {filename!r} from Chroma", cause=exc
            ) from exc

        documents = records.get("documents")
        metadatas = records.get("metadatas")
        embeddings = records.get("embeddings")
        ids = records.get("ids") or []
        documents = list(documents) if documents is not None else [""] * len(ids)
        metadatas = list(metadatas) if metadatas is not None else [{}] * len(ids)
        embeddings = list(embeddings) if embeddings is not None else [[]] * len(ids)

        chunks: List[ChunkRecord] = []
        for document, metadata, vector in zip(documents, metadatas, embeddings):
            metadata = metadata or {}
            chunks.append(
                ChunkRecord(
                    filename=filename,
                    chunk_id=int(metadata.get("chunk_id", 0)),
                    content=document or "",
                    embedding=[float(value) for value in vector],
                    updated_at=int(metadata.get("updated_at", 0)),
                )
            )
        return sorted(chunks, key=lambda record: record.chunk_id)

    def count(self, filename: Optional[str] = None) -> int:
        if filename is not None:
            return len(self.list_chunks(filename))
        try:
            return int(self._collection.count())
        except Exception as exc:
            raise VectorStoreUnavailableError("Failed to count Chroma chunks", cause=exc) from exc


__all__ = ["ChromaChunkStore", "DEFAULT_COLLECTION_NAME"]
