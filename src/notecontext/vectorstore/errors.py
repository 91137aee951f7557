"""Exceptions raised by chunk store backends."""
from __future__ import annotations


class VectorStoreUnavailableError(RuntimeError):
    """Raised when the chunk store backend cannot be initialised or queried."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ReindexStateError(RuntimeError):
    """Raised when a reindex transaction step is called out of order."""
