from __future__ import annotations

import builtins

import pytest

from notecontext import embeddings
from notecontext.providers import MockEmbeddingProvider


def test_embedding_model_uses_fallback_when_install_heavy_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INSTALL_HEAVY", "false")

    real_import = builtins.__import__

    def _guarded_import(name: str, *args, **kwargs):
        if name == "sentence_transformers":
            raise AssertionError("sentence-transformers should not be imported when INSTALL_HEAVY is false")
        return real_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", _guarded_import)

    model = embeddings.EmbeddingModel()

    vectors = model.embed_texts(["hello", "world"])
    assert len(vectors) == 2
    assert all(len(vector) == embeddings.FALLBACK_DIMENSION for vector in vectors)
    assert vectors[0] != vectors[1]
    assert model.model_name == "deterministic-fallback"


def test_embedding_model_deterministic_output() -> None:
    vectors_a = embeddings.EmbeddingModel().embed_texts(["same text"])
    vectors_b = embeddings.EmbeddingModel().embed_texts(["same text"])

    assert vectors_a == vectors_b
    assert embeddings.EmbeddingModel().embed_texts([]) == []


def test_embedding_model_is_cached() -> None:
    first = embeddings.get_embedding_model()
    assert embeddings.get_embedding_model() is first

    embeddings.reset_embedding_model_cache()
    assert embeddings.get_embedding_model() is not first


@pytest.mark.anyio
async def test_model_provider_embeds_single_text() -> None:
    provider = embeddings.ModelEmbeddingProvider(embeddings.EmbeddingModel())

    vector = await provider.embed("anxiety")

    assert vector is not None and len(vector) == embeddings.FALLBACK_DIMENSION
    assert await provider.embed("") is None
    assert await provider.available() is True
    assert provider.model_name == "deterministic-fallback"


@pytest.mark.anyio
async def test_model_provider_reports_failures_as_none(monkeypatch: pytest.MonkeyPatch) -> None:
    model = embeddings.EmbeddingModel()

    def _boom(text, dimension):
        raise RuntimeError("out of memory")

    monkeypatch.setattr(embeddings, "hashed_embedding", _boom)
    provider = embeddings.ModelEmbeddingProvider(model)

    assert await provider.embed("anything") is None
    assert await provider.available() is False


@pytest.mark.anyio
async def test_mock_provider_is_deterministic() -> None:
    provider = MockEmbeddingProvider(dimension=5)

    first = await provider.embed("hello")
    assert first is not None and len(first) == 5
    assert first == await provider.embed("hello")
    assert first != await provider.embed("world")
    assert await provider.embed("") is None

    with pytest.raises(ValueError):
        MockEmbeddingProvider(dimension=0)


def test_hashed_embedding_is_unit_length() -> None:
    vector = embeddings.hashed_embedding("note", dimension=16)

    assert len(vector) == 16
    assert sum(value * value for value in vector) == pytest.approx(1.0)


def test_model_load_failure_falls_back(monkeypatch: pytest.MonkeyPatch) -> None:
    sentence_transformers = pytest.importorskip("sentence_transformers")
    monkeypatch.setenv("INSTALL_HEAVY", "true")

    def _unavailable(*_args, **_kwargs):
        raise OSError("model files missing")

    monkeypatch.setattr(sentence_transformers, "SentenceTransformer", _unavailable)

    model = embeddings.EmbeddingModel("missing/model")
    assert model.model_name == "missing/model"

    vectors = model.embed_texts(["text"])

    assert model.model_name == embeddings.FALLBACK_MODEL_NAME
    assert len(vectors[0]) == embeddings.FALLBACK_DIMENSION
