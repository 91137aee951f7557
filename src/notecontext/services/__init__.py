"""Service layer wiring the indexing and retrieval components."""
from __future__ import annotations

from .context import ContextService, ProbeResult, get_context_service, reset_context_service_cache

__all__ = ["ContextService", "ProbeResult", "get_context_service", "reset_context_service_cache"]
