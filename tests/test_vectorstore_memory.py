"""Tests for the in-memory chunk stores."""
from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

from notecontext.models import ChunkRecord
from notecontext.vectorstore import (
    InMemoryChunkStore,
    PersistentInMemoryChunkStore,
    cosine_similarity,
    get_chunk_store,
    reset_chunk_store_cache,
)


def _record(filename: str, chunk_id: int, embedding: list[float], content: str | None = None) -> ChunkRecord:
    return ChunkRecord(
        filename=filename,
        chunk_id=chunk_id,
        content=content or f"{filename} chunk {chunk_id}",
        embedding=embedding,
        updated_at=1_700_000_000_000,
    )


def test_query_returns_results_ordered_by_similarity() -> None:
    store = InMemoryChunkStore()
    store.upsert(_record("a.md", 0, [1.0, 0.0]))
    store.upsert(_record("b.md", 0, [0.0, 1.0]))
    store.upsert(_record("c.md", 0, [0.9, 0.1]))

    results = store.query_similar([1.0, 0.0], top_k=3, threshold=0.0)

    assert [result.filename for result in results] == ["a.md", "c.md", "b.md"]
    assert results[0].id == "a.md:0"
    assert results[0].similarity == pytest.approx(1.0)


def test_query_applies_threshold_and_top_k() -> None:
    store = InMemoryChunkStore()
    store.upsert(_record("a.md", 0, [1.0, 0.0]))
    store.upsert(_record("a.md", 1, [0.8, 0.2]))
    store.upsert(_record("b.md", 0, [0.0, 1.0]))

    assert len(store.query_similar([1.0, 0.0], top_k=1, threshold=0.0)) == 1
    above = store.query_similar([1.0, 0.0], top_k=5, threshold=0.7)
    assert [result.id for result in above] == ["a.md:0", "a.md:1"]
    assert store.query_similar([1.0, 0.0], top_k=0, threshold=0.0) == []


def test_query_skips_records_with_other_dimensions() -> None:
    store = InMemoryChunkStore()
    store.upsert(_record("a.md", 0, [1.0, 0.0, 0.0]))
    store.upsert(_record("b.md", 0, [1.0, 0.0]))

    results = store.query_similar([1.0, 0.0], top_k=5, threshold=0.0)

    assert [result.filename for result in results] == ["b.md"]


def test_upsert_replaces_same_key_and_delete_by_filename() -> None:
    store = InMemoryChunkStore()
    store.upsert(_record("a.md", 0, [1.0, 0.0], "old"))
    store.upsert(_record("a.md", 0, [1.0, 0.0], "new"))
    store.upsert(_record("a.md", 1, [1.0, 0.0]))
    store.upsert(_record("b.md", 0, [1.0, 0.0]))

    assert [record.content for record in store.list_chunks("a.md")][0] == "new"
    assert store.count("a.md") == 2
    assert store.count() == 3

    assert store.delete_by_filename("a.md") == 2
    assert store.list_chunks("a.md") == []
    assert store.delete_by_filename("a.md") == 0
    assert store.count() == 1


def test_cosine_similarity_handles_zero_vectors_and_mismatch() -> None:
    matrix = np.asarray([[0.0, 0.0], [2.0, 0.0]])

    scores = cosine_similarity(np.asarray([1.0, 0.0]), matrix)

    assert scores.tolist() == [0.0, 1.0]
    with pytest.raises(ValueError):
        cosine_similarity(np.asarray([1.0, 0.0, 0.0]), matrix)


def test_persistent_store_round_trips_records(tmp_path: Path) -> None:
    store = PersistentInMemoryChunkStore(tmp_path / "chunks")
    store.upsert(_record("a.md", 0, [0.5, 0.5]))
    store.upsert(_record("a.md", 1, [0.1, 0.9]))
    store.delete_by_filename("missing.md")

    reloaded = PersistentInMemoryChunkStore(tmp_path / "chunks")

    assert reloaded.data_path.exists()
    assert [record.chunk_id for record in reloaded.list_chunks("a.md")] == [0, 1]
    assert reloaded.list_chunks("a.md")[1].embedding == [0.1, 0.9]


def test_persistent_store_skips_malformed_entries(tmp_path: Path) -> None:
    directory = tmp_path / "chunks"
    directory.mkdir()
    (directory / "chunks.json").write_text(
        '[{"filename": "a.md", "chunk_id": 0, "content": "ok", "embedding": [1.0]},'
        ' {"chunk_id": "x"}]',
        encoding="utf-8",
    )

    store = PersistentInMemoryChunkStore(directory)

    assert store.count() == 1


def test_factory_selects_backend_from_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    assert type(get_chunk_store()) is InMemoryChunkStore
    assert get_chunk_store() is get_chunk_store()

    monkeypatch.setenv("CHUNK_STORE_PERSIST_DIR", str(tmp_path / "persisted"))
    reset_chunk_store_cache()
    assert isinstance(get_chunk_store(), PersistentInMemoryChunkStore)

    monkeypatch.setenv("VECTOR_STORE", "unknown")
    reset_chunk_store_cache()
    with pytest.raises(ValueError):
        get_chunk_store()
