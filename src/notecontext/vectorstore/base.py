"""Chunk store contract and the reindex transaction built on top of it."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from types import TracebackType
from typing import List, Optional, Sequence, Type

from notecontext.models import ChunkRecord, SimilarChunk

from .errors import ReindexStateError

LOGGER = logging.getLogger(__name__)


class ChunkStore(ABC):
    """Persistent store of chunk records keyed by ``(filename, chunk_id)``."""

    backend_name = "unknown"

    @abstractmethod
    def upsert(self, record: ChunkRecord) -> None:
        """Insert *record* or replace the record sharing its key."""

    @abstractmethod
    def delete_by_filename(self, filename: str) -> int:
        """Remove every chunk of *filename* and return how many were removed."""

    @abstractmethod
    def query_similar(
        self,
        embedding: Sequence[float],
        top_k: int,
        threshold: float,
    ) -> List[SimilarChunk]:
        """Return up to *top_k* chunks with cosine similarity ``>= threshold``, best first."""

    @abstractmethod
    def list_chunks(self, filename: str) -> List[ChunkRecord]:
        """Return the stored chunks of *filename* ordered by ``chunk_id``."""

    def count(self, filename: Optional[str] = None) -> int:
        if filename is None:
            raise NotImplementedError(f"{type(self).__name__} cannot count all chunks")
        return len(self.list_chunks(filename))

    def reindex(self, filename: str) -> "ReindexTransaction":
        return ReindexTransaction(self, filename)


class ReindexTransaction:
    """Replace every chunk of one file: begin, delete old, insert new, commit.

    There is no isolation and no rollback. Between :meth:`delete_old` and
    :meth:`commit` a concurrent reader of the store may see no chunks, or only
    part of the new chunks, for the file. An aborted transaction leaves
    whatever was inserted before the failure.
    """

    PENDING = "pending"
    OPEN = "open"
    COMMITTED = "committed"
    ABORTED = "aborted"

    def __init__(self, store: ChunkStore, filename: str) -> None:
        self.store = store
        self.filename = filename
        self.state = self.PENDING
        self.deleted = 0
        self.inserted = 0
        self._old_deleted = False

    def begin(self) -> "ReindexTransaction":
        if self.state != self.PENDING:
            raise ReindexStateError(f"Cannot begin a transaction in state {self.state!r}")
        self.state = self.OPEN
        return self

    def delete_old(self) -> int:
        self._require_open()
        if self._old_deleted:
            raise ReindexStateError(f"Old chunks of {self.filename!r} were already deleted")
        self.deleted = self.store.delete_by_filename(self.filename)
        self._old_deleted = True
        return self.deleted

    def insert(self, record: ChunkRecord) -> None:
        self._require_open()
        if not self._old_deleted:
            raise ReindexStateError("delete_old() must run before inserting new chunks")
        if record.filename != self.filename:
            raise ValueError(
                f"Chunk belongs to {record.filename!r}, transaction is for {self.filename!r}"
            )
        self.store.upsert(record)
        self.inserted += 1

    def commit(self) -> None:
        self._require_open()
        self.state = self.COMMITTED
        LOGGER.debug(
            "Reindexed %s: removed %d chunks, inserted %d", self.filename, self.deleted, self.inserted
        )

    def abort(self) -> None:
        if self.state in (self.COMMITTED, self.ABORTED):
            return
        self.state = self.ABORTED
        LOGGER.warning(
            "Reindex of %s aborted after inserting %d chunks", self.filename, self.inserted
        )

    def _require_open(self) -> None:
        if self.state != self.OPEN:
            raise ReindexStateError(f"Transaction for {self.filename!r} is {self.state}")

    def __enter__(self) -> "ReindexTransaction":
        return self.begin()

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.abort()


__all__ = ["ChunkStore", "ReindexTransaction"]
