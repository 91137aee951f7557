"""In-memory chunk store, optionally persisted to a JSON file."""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from notecontext.models import ChunkRecord, SimilarChunk

from .base import ChunkStore

LOGGER = logging.getLogger(__name__)


def chunk_uid(filename: str, chunk_id: int) -> str:
    return f"{filename}:{chunk_id}"


def cosine_similarity(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity between *query* and every row of *matrix*."""

    if matrix.shape[1] != query.shape[0]:
        raise ValueError(
            f"Vector dimensions don't match: {query.shape[0]} vs {matrix.shape[1]}"
        )
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(norms == 0, 0.0, dots / norms)
    return scores


class InMemoryChunkStore(ChunkStore):
    """Keep chunk records in a dictionary guarded by a lock."""

    backend_name = "memory"

    def __init__(self) -> None:
        self._records: Dict[Tuple[str, int], ChunkRecord] = {}
        self._lock = threading.RLock()

    def upsert(self, record: ChunkRecord) -> None:
        with self._lock:
            self._records[record.key] = ChunkRecord(
                filename=record.filename,
                chunk_id=int(record.chunk_id),
                content=record.content,
                embedding=[float(value) for value in record.embedding],
                updated_at=int(record.updated_at),
            )
            self._changed()

    def delete_by_filename(self, filename: str) -> int:
        with self._lock:
            keys = [key for key in self._records if key[0] == filename]
            for key in keys:
                del self._records[key]
            if keys:
                self._changed()
            return len(keys)

    def query_similar(
        self,
        embedding: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> List[SimilarChunk]:
        if top_k <= 0:
            return []
        with self._lock:
            records = [
                record
                for record in self._records.values()
                if len(record.embedding) == len(embedding)
            ]
        if not records:
            return []

        matrix = np.asarray([record.embedding for record in records], dtype=float)
        scores = cosine_similarity(np.asarray(embedding, dtype=float), matrix)
        # Stable sort keeps insertion order between equal scores.
        order = np.argsort(-scores, kind="stable")

        results: List[SimilarChunk] = []
        for index in order:
            similarity = float(scores[index])
            if similarity < threshold:
                break
            record = records[int(index)]
            results.append(
                SimilarChunk(
                    id=chunk_uid(record.filename, record.chunk_id),
                    filename=record.filename,
                    content=record.content,
                    similarity=similarity,
                )
            )
            if len(results) >= top_k:
                break
        return results

    def list_chunks(self, filename: str) -> List[ChunkRecord]:
        with self._lock:
            records = [record for key, record in self._records.items() if key[0] == filename]
        return sorted(records, key=lambda record: record.chunk_id)

    def count(self, filename: Optional[str] = None) -> int:
        with self._lock:
            if filename is None:
                return len(self._records)
            return sum(1 for key in self._records if key[0] == filename)

    def _changed(self) -> None:
        """Hook invoked after every mutation while the lock is held."""


class PersistentInMemoryChunkStore(InMemoryChunkStore):
    """In-memory chunk store that saves its state to ``chunks.json``."""

    backend_name = "memory-persistent"

    def __init__(self, persist_dir: str | Path) -> None:
        super().__init__()
        self._persist_dir = Path(persist_dir)
        self._persist_dir.mkdir(parents=True, exist_ok=True)
        self._data_path = self._persist_dir / "chunks.json"
        self._load()

    @property
    def data_path(self) -> Path:
        return self._data_path

    def _load(self) -> None:
        if not self._data_path.exists():
            return
        try:
            payload = json.loads(self._data_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            LOGGER.warning("Failed to load chunk store from %s", self._data_path)
            return

        for entry in payload:
            try:
                record = ChunkRecord(
                    filename=str(entry["filename"]),
                    chunk_id=int(entry["chunk_id"]),
                    content=str(entry.get("content", "")),
                    embedding=[float(value) for value in entry.get("embedding", [])],
                    updated_at=int(entry.get("updated_at", 0)),
                )
            except (KeyError, TypeError, ValueError):
                LOGGER.warning("Skipping malformed chunk entry in %s", self._data_path)
                continue
            self._records[record.key] = record

    def _changed(self) -> None:
        payload = [
            {
                "filename": record.filename,
                "chunk_id": record.chunk_id,
                "content": record.content,
                "embedding": record.embedding,
                "updated_at": record.updated_at,
            }
            for record in self._records.values()
        ]
        tmp_path = self._data_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self._data_path)


__all__ = [
    "InMemoryChunkStore",
    "PersistentInMemoryChunkStore",
    "chunk_uid",
    "cosine_similarity",
]
