from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from notecontext.models import Keyword
from notecontext.providers import NoOpReranker
from notecontext.services.context import ContextService
from notecontext.settings import RESULT_COUNT_KEY, DictSettingsStore, JsonSettingsStore


@pytest.fixture
def settings() -> DictSettingsStore:
    return DictSettingsStore()


@pytest.fixture
def service(workspace, embedder, store, settings) -> ContextService:
    return ContextService(
        workspace=workspace,
        embedding_provider=embedder,
        chunk_store=store,
        reranker=NoOpReranker(),
        settings_store=settings,
    )


@pytest.mark.anyio
async def test_index_then_query(service, write_note) -> None:
    write_note("note1.md", "Patient shows anxiety symptoms.")
    write_note("note2.md", "Unrelated gardening tips.")

    summary = await service.process_all_documents()
    context = await service.build_context([Keyword("anxiety")])

    assert summary.as_dict() == {"total": 2, "success": 2, "failed": 0}
    assert context.startswith("File: note1.md\n")


@pytest.mark.anyio
async def test_settings_are_read_for_each_operation(service, settings, store) -> None:
    for index in range(3):
        await service.process_document(f"n{index}.md", f"anxiety entry {index}")

    settings.set(RESULT_COUNT_KEY, 1)
    assert (await service.build_context([Keyword("anxiety")])).count("File: ") == 1

    settings.set(RESULT_COUNT_KEY, 3)
    assert (await service.build_context([Keyword("anxiety")])).count("File: ") == 3


@pytest.mark.anyio
async def test_unreadable_settings_yield_empty_context(workspace, embedder, store, tmp_path: Path) -> None:
    broken = tmp_path / "store.json"
    broken.write_text("{not json", encoding="utf-8")
    service = ContextService(
        workspace=workspace,
        embedding_provider=embedder,
        chunk_store=store,
        reranker=NoOpReranker(),
        settings_store=JsonSettingsStore(broken),
    )

    assert await service.build_context([Keyword("anxiety")]) == ""


@pytest.mark.anyio
async def test_handle_file_update_and_probes(service, store) -> None:
    await service.handle_file_update("diary.md", "anxiety today")
    await service.handle_file_update("diary.txt", "ignored")

    assert store.count("diary.md") == 1
    assert store.count("diary.txt") == 0

    probes = await service.probes()
    assert probes.embedding is True
    assert probes.rerank is False


@pytest.mark.anyio
async def test_operations_write_audit_records(
    service, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    audit = logging.getLogger("notecontext.index.audit")
    monkeypatch.setattr(audit, "propagate", False)
    audit.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.INFO, logger="notecontext.index.audit"):
            await service.process_document("a.md", "anxiety")
            await service.build_context([Keyword("anxiety", 2.0)])
    finally:
        audit.removeHandler(caplog.handler)

    events = [record.msg for record in caplog.records if record.name == "notecontext.index.audit"]
    assert events[0] == {"event": "index", "filename": "a.md", "success": True}
    assert events[1]["event"] == "context"
    assert events[1]["keywords"] == [{"text": "anxiety", "weight": 2.0}]
    assert json.dumps(events[1])
