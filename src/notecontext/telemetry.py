"""Structured lifecycle events for indexing and retrieval."""

from __future__ import annotations

import logging
import time
import traceback
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

LOGGER = logging.getLogger("notecontext.telemetry")

_PREVIEW_CHARS = 120


def _describe_exception(error: BaseException) -> Dict[str, str]:
    return {
        "type": type(error).__name__,
        "message": str(error),
        "trace": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
    }


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    filename: str | None = None,
    keyword: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Log one event dict: ``step`` and ``module`` always, the rest when given.

    The dict is the log message itself so the JSON formatter can merge it into
    the output line.
    """

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if filename is not None:
        event["file"] = filename
    if keyword is not None:
        event["keyword_preview"] = keyword[:_PREVIEW_CHARS]
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details:
        event["details"] = details
    event.update(payload)

    exc_info = None
    if isinstance(exc, BaseException):
        event["exc"] = _describe_exception(exc)
        exc_info = (type(exc), exc, exc.__traceback__)
    elif exc is not None:
        event["exc"] = {"message": str(exc)}

    getattr(logger, level.lower(), logger.info)(event, exc_info=exc_info)


def emit_embeddings_event(
    *, model: str, count: int, duration_ms: float, errors: list[str] | None = None
) -> None:
    log_event(
        LOGGER,
        "embeddings.compute",
        level="warning" if errors else "info",
        duration_ms=duration_ms,
        details={
            "model": model,
            "count": count,
            "errors": errors or [],
            "per_item_ms": round(duration_ms / count, 3) if count else None,
        },
    )


def emit_vectorstore_event(
    step: str,
    *,
    backend: str,
    filename: str | None = None,
    count: int,
    error: BaseException | None = None,
) -> None:
    log_event(
        LOGGER,
        step,
        level="error" if error else "info",
        filename=filename,
        exc=error,
        details={"backend": backend, "count": count},
    )


def emit_retriever_event(
    step: str,
    *,
    keyword: str,
    weight: float,
    results: int,
    duration_ms: float,
) -> None:
    log_event(
        LOGGER,
        step,
        keyword=keyword,
        duration_ms=duration_ms,
        details={"weight": weight, "results": results},
    )


def emit_index_event(
    step: str,
    *,
    filename: str,
    chunks: int | None = None,
    embedded: int | None = None,
    skipped: int | None = None,
    duration_ms: float | None = None,
) -> None:
    counters = {"chunks": chunks, "embedded": embedded, "skipped": skipped}
    log_event(
        LOGGER,
        step,
        level="warning" if skipped else "info",
        filename=filename,
        duration_ms=duration_ms,
        details={key: value for key, value in counters.items() if value is not None},
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    filename: str | None = None,
    suggestion: str | None = None,
) -> None:
    details = {"module": module}
    if suggestion:
        details["suggestion"] = suggestion
    log_event(LOGGER, "exception", level="error", filename=filename, details=details, exc=error)


@contextmanager
def traced_duration(
    step: str, *, logger: Optional[logging.Logger] = None, **fields: Any
) -> Iterator[Dict[str, Any]]:
    """Log ``<step>.start`` and ``<step>.complete`` around a block.

    The yielded dict is merged into the completion event, so the block can
    report its own counters. A failure logs ``<step>.error`` instead of
    ``<step>.complete`` and propagates.
    """

    logger = logger or LOGGER
    outcome: Dict[str, Any] = {}
    started = time.perf_counter()
    log_event(logger, f"{step}.start", details=dict(fields))
    try:
        yield outcome
    except Exception as error:
        log_event(
            logger,
            f"{step}.error",
            level="error",
            duration_ms=(time.perf_counter() - started) * 1000.0,
            details={**fields, **outcome},
            exc=error,
        )
        raise
    log_event(
        logger,
        f"{step}.complete",
        duration_ms=(time.perf_counter() - started) * 1000.0,
        details={**fields, **outcome},
    )


__all__ = [
    "emit_embeddings_event",
    "emit_exception",
    "emit_index_event",
    "emit_retriever_event",
    "emit_vectorstore_event",
    "log_event",
    "traced_duration",
]
