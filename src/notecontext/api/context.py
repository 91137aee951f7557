"""API router exposing context retrieval and indexing endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from notecontext.models import Keyword
from notecontext.services.context import ContextService, get_context_service
from notecontext.vectorstore import VectorStoreUnavailableError
from notecontext.workspace import DOCUMENT_EXTENSION, WorkspaceError, document_filename

router = APIRouter(tags=["context"])


class KeywordModel(BaseModel):
    """A query keyword and its relevance multiplier."""

    text: str = Field(..., min_length=1, description="Keyword to search the notes for.")
    weight: float = Field(1.0, gt=0, description="Multiplier applied to the keyword's scores.")


class ContextRequest(BaseModel):
    """Request body accepted by the context endpoint."""

    keywords: list[KeywordModel] = Field(default_factory=list)


class ContextResponse(BaseModel):
    context: str


class IndexSummaryResponse(BaseModel):
    """Counters of a full workspace reindex."""

    total: int
    success: int
    failed: int


class IndexFileRequest(BaseModel):
    content: str | None = Field(
        None, description="Current document text; read from the workspace when omitted."
    )


class IndexFileResponse(BaseModel):
    filename: str
    success: bool


class ProbeResponse(BaseModel):
    embedding: bool
    rerank: bool


@router.post("/context", response_model=ContextResponse)
async def build_context(
    request: ContextRequest,
    service: ContextService = Depends(get_context_service),
) -> ContextResponse:
    """Return the context block assembled for the weighted keywords."""

    keywords = [Keyword(text=item.text, weight=item.weight) for item in request.keywords]
    return ContextResponse(context=await service.build_context(keywords))


@router.post("/index", response_model=IndexSummaryResponse)
async def reindex_workspace(
    service: ContextService = Depends(get_context_service),
) -> IndexSummaryResponse:
    """Rechunk and re-embed every document of the workspace."""

    try:
        summary = await service.process_all_documents()
    except WorkspaceError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except VectorStoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return IndexSummaryResponse(**summary.as_dict())


@router.post("/index/{filename:path}", response_model=IndexFileResponse)
async def index_file(
    filename: str,
    request: IndexFileRequest | None = None,
    service: ContextService = Depends(get_context_service),
) -> IndexFileResponse:
    """Reindex a single workspace document."""

    if not filename.endswith(DOCUMENT_EXTENSION):
        raise HTTPException(status_code=400, detail="Only markdown documents can be indexed")
    try:
        service.workspace.resolve(filename)
    except WorkspaceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    content = request.content if request is not None else None
    success = await service.process_document(filename, content)
    return IndexFileResponse(filename=document_filename(filename), success=success)


@router.get("/probes", response_model=ProbeResponse)
async def probes(service: ContextService = Depends(get_context_service)) -> ProbeResponse:
    """Advisory availability of the embedding and rerank models."""

    result = await service.probes()
    return ProbeResponse(embedding=result.embedding, rerank=result.rerank)
