"""Retrieval settings read from the application key/value store."""
from __future__ import annotations

import json
import logging
import math
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200
DEFAULT_RESULT_COUNT = 5
DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_CALL_TIMEOUT_SECONDS = 30.0

CHUNK_SIZE_KEY = "ragChunkSize"
CHUNK_OVERLAP_KEY = "ragChunkOverlap"
RESULT_COUNT_KEY = "ragResultCount"
SIMILARITY_THRESHOLD_KEY = "ragSimilarityThreshold"


@dataclass(frozen=True, slots=True)
class RagConfig:
    """Immutable snapshot of the retrieval settings for one operation."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    result_count: int = DEFAULT_RESULT_COUNT
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS

    def with_overrides(self, **changes: Any) -> "RagConfig":
        return replace(self, **changes)


class SettingsStore(ABC):
    """Key/value store holding user preferences."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the stored value for *key* or ``None``."""


class DictSettingsStore(SettingsStore):
    """Settings held in memory, mainly for tests and embedding callers."""

    def __init__(self, values: Optional[Dict[str, Any]] = None) -> None:
        self._values = dict(values or {})

    def get(self, key: str) -> Any:
        return self._values.get(key)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value


class JsonSettingsStore(SettingsStore):
    """Settings persisted in a ``store.json`` file.

    The file is re-read on every lookup so edits made by other processes are
    visible to the next operation.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Settings file {self.path} must contain a JSON object")
        return payload

    def get(self, key: str) -> Any:
        return self._load().get(key)

    def set(self, key: str, value: Any) -> None:
        payload = self._load()
        payload[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self.path)


def _int_from_env(name: str, default: int, *, minimum: int = 1) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        number = int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default
    if number < minimum:
        LOGGER.warning("Out of range value for %s: %s; using default %s", name, value, default)
        return default
    return number


def _float_from_env(
    name: str, default: float, *, minimum: float = 0.0, maximum: Optional[float] = None
) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        number = float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default
    if not math.isfinite(number) or number < minimum or (maximum is not None and number > maximum):
        LOGGER.warning("Out of range value for %s: %s; using default %s", name, value, default)
        return default
    return number


def _positive_int(store: SettingsStore, key: str, default: int, *, allow_zero: bool = False) -> int:
    value = store.get(key)
    # Unset and zero values fall back to the default, like the source settings screen.
    if value is None or value == "" or (value == 0 and not allow_zero):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid integer for setting %s: %r; using default %s", key, value, default)
        return default
    if number < 0 or (number == 0 and not allow_zero):
        LOGGER.warning("Out of range value for setting %s: %r; using default %s", key, value, default)
        return default
    return number


def _unit_float(store: SettingsStore, key: str, default: float) -> float:
    value = store.get(key)
    if value is None or value == "" or value == 0:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid float for setting %s: %r; using default %s", key, value, default)
        return default
    if not 0.0 <= number <= 1.0:
        LOGGER.warning("Out of range value for setting %s: %r; using default %s", key, value, default)
        return default
    return number


def load_rag_config(store: Optional[SettingsStore] = None) -> RagConfig:
    """Build a :class:`RagConfig` from *store* with environment overrides applied."""

    store = store or DictSettingsStore()
    chunk_size = _positive_int(store, CHUNK_SIZE_KEY, DEFAULT_CHUNK_SIZE)
    chunk_overlap = _positive_int(store, CHUNK_OVERLAP_KEY, DEFAULT_CHUNK_OVERLAP, allow_zero=True)
    result_count = _positive_int(store, RESULT_COUNT_KEY, DEFAULT_RESULT_COUNT)
    threshold = _unit_float(store, SIMILARITY_THRESHOLD_KEY, DEFAULT_SIMILARITY_THRESHOLD)

    return RagConfig(
        chunk_size=_int_from_env("RAG_CHUNK_SIZE", chunk_size),
        chunk_overlap=_int_from_env("RAG_CHUNK_OVERLAP", chunk_overlap, minimum=0),
        result_count=_int_from_env("RAG_RESULT_COUNT", result_count),
        similarity_threshold=_float_from_env("RAG_SIMILARITY_THRESHOLD", threshold, maximum=1.0),
        call_timeout_seconds=_float_from_env(
            "RAG_CALL_TIMEOUT", DEFAULT_CALL_TIMEOUT_SECONDS, minimum=0.001
        ),
    )


def default_home() -> Path:
    """Return the application data directory (``$NOTECONTEXT_HOME``)."""

    return Path(os.getenv("NOTECONTEXT_HOME", Path.home() / ".notecontext")).expanduser()


def get_settings_store() -> JsonSettingsStore:
    """Return the settings store configured through ``NOTECONTEXT_SETTINGS``."""

    path = os.getenv("NOTECONTEXT_SETTINGS") or str(default_home() / "store.json")
    return JsonSettingsStore(path)


__all__ = [
    "CHUNK_OVERLAP_KEY",
    "CHUNK_SIZE_KEY",
    "DictSettingsStore",
    "JsonSettingsStore",
    "RESULT_COUNT_KEY",
    "RagConfig",
    "SIMILARITY_THRESHOLD_KEY",
    "SettingsStore",
    "default_home",
    "get_settings_store",
    "load_rag_config",
]
