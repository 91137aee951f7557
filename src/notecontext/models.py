"""Data models shared by the indexing and retrieval components."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Optional, Tuple

CandidateSource = Literal["fuzzy", "vector"]


@dataclass(slots=True)
class Document:
    """A markdown note in the workspace."""

    filename: str
    path: Path
    content: str


@dataclass(slots=True)
class ChunkRecord:
    """A persisted chunk keyed by ``(filename, chunk_id)``."""

    filename: str
    chunk_id: int
    content: str
    embedding: List[float]
    updated_at: int

    @property
    def key(self) -> Tuple[str, int]:
        return (self.filename, self.chunk_id)


@dataclass(slots=True)
class SimilarChunk:
    """Similarity search hit returned by a chunk store."""

    id: str
    filename: str
    content: str
    similarity: float


@dataclass(frozen=True, slots=True)
class Keyword:
    """Query keyword paired with a positive relevance multiplier."""

    text: str
    weight: float = 1.0


@dataclass(slots=True)
class ContextCandidate:
    """A scored snippet collected while assembling context for one query."""

    filename: str
    content: str
    score: float
    keyword: str
    source: CandidateSource

    @property
    def identity(self) -> str:
        return f"{self.filename}-{self.content[:100]}"


@dataclass(slots=True)
class SearchItem:
    """Generic presentation of a document to the fuzzy matcher."""

    id: str
    title: str
    article: str
    search_type: str = "markdown"

    def field(self, key: str) -> str:
        value = getattr(self, key, None)
        return value if isinstance(value, str) else ""


@dataclass(slots=True)
class FuzzyMatch:
    """Matched span of one item field.

    ``indices`` holds inclusive ``(start, end)`` character offsets into ``value``.
    """

    key: str
    indices: List[Tuple[int, int]]
    value: str


@dataclass(slots=True)
class FuzzyResult:
    """Fuzzy search hit; higher ``score`` means a better match."""

    item: SearchItem
    score: float
    matches: List[FuzzyMatch] = field(default_factory=list)
    refindex: Optional[int] = None


@dataclass(slots=True)
class ProcessSummary:
    """Counters returned from a full workspace reindex."""

    total: int = 0
    success: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {"total": self.total, "success": self.success, "failed": self.failed}


__all__ = [
    "CandidateSource",
    "ChunkRecord",
    "ContextCandidate",
    "Document",
    "FuzzyMatch",
    "FuzzyResult",
    "Keyword",
    "ProcessSummary",
    "SearchItem",
    "SimilarChunk",
]
