import logging
from typing import Any, Callable, TypeVar

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from notecontext.api.context import router as context_router
from notecontext.logging_config import configure_logging
from notecontext.services.context import ContextService, get_context_service
from notecontext.vectorstore import VectorStoreUnavailableError

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Note Context Engine")
app.include_router(context_router)


@app.exception_handler(VectorStoreUnavailableError)
async def _vector_store_unavailable(_: Request, exc: VectorStoreUnavailableError) -> JSONResponse:
    LOGGER.error("Chunk store unavailable: %s", exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


T = TypeVar("T")


def _resolve_dependency(factory: Callable[[], T]) -> T:
    """Resolve a dependency while respecting FastAPI overrides."""

    override: Any | None = app.dependency_overrides.get(factory)
    resolved: Any = override if override is not None else factory
    return resolved() if callable(resolved) else resolved


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/readyz", response_class=PlainTextResponse)
async def readiness_probe() -> str:
    """Readiness probe that ensures the chunk store and embedding model answer."""

    errors: list[str] = []
    try:
        service: ContextService = _resolve_dependency(get_context_service)
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"service_unavailable: {exc}") from exc

    try:
        service.chunk_store.count()
    except Exception as exc:
        errors.append(f"chunk_store_unavailable: {exc}")

    if not await service.check_embedding_available():
        errors.append("embedding_model_unavailable")

    if errors:
        raise HTTPException(status_code=503, detail="; ".join(errors))
    return "ok"
