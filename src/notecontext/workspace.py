"""Access to the markdown note workspace on disk."""
from __future__ import annotations

import asyncio
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import List

from notecontext.models import Document
from notecontext.settings import default_home

LOGGER = logging.getLogger(__name__)

DOCUMENT_EXTENSION = ".md"


class WorkspaceError(RuntimeError):
    """Raised when the workspace root cannot be enumerated."""


class Workspace:
    """A document tree rooted either in the app sandbox or a user-chosen folder.

    The sandbox root is created on demand; a custom root must already exist.
    """

    def __init__(self, root: str | Path, *, is_custom: bool = False) -> None:
        self.root = Path(root).expanduser()
        self.is_custom = is_custom

    @classmethod
    def from_env(cls) -> "Workspace":
        custom = os.getenv("NOTECONTEXT_WORKSPACE")
        if custom:
            return cls(custom, is_custom=True)
        return cls(default_home() / "article")

    def resolve(self, path: str | Path) -> Path:
        """Absolute location of *path*, which must stay under the workspace root."""

        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        resolved = candidate.resolve()
        if not resolved.is_relative_to(self.root.resolve()):
            raise WorkspaceError(f"{path} is outside the workspace {self.root}")
        return resolved

    def list_document_paths(self) -> List[Path]:
        """Return every markdown leaf under the root, depth first, sorted by name."""

        if not self.root.exists():
            if self.is_custom:
                raise WorkspaceError(f"Workspace folder {self.root} does not exist")
            self.root.mkdir(parents=True, exist_ok=True)
        if not self.root.is_dir():
            raise WorkspaceError(f"Workspace root {self.root} is not a directory")

        found: List[Path] = []
        self._walk(self.root, found)
        return found

    def _walk(self, directory: Path, found: List[Path]) -> None:
        try:
            entries = sorted(directory.iterdir(), key=lambda entry: entry.name)
        except OSError as exc:
            raise WorkspaceError(f"Failed to read directory {directory}") from exc
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir():
                self._walk(entry, found)
            elif entry.is_file() and entry.name.endswith(DOCUMENT_EXTENSION):
                found.append(entry)

    def read_document(self, path: str | Path) -> str:
        return self.resolve(path).read_text(encoding="utf-8")

    def load_all(self) -> List[Document]:
        """Read every document; unreadable files are logged and left out."""

        documents: List[Document] = []
        for path in self.list_document_paths():
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                LOGGER.warning("Failed to read document %s", path, exc_info=True)
                continue
            documents.append(Document(filename=path.name, path=path, content=content))
        return documents

    async def list_documents(self) -> List[Path]:
        return await asyncio.to_thread(self.list_document_paths)

    async def read_text(self, path: str | Path) -> str:
        return await asyncio.to_thread(self.read_document, path)

    async def load_documents(self) -> List[Document]:
        return await asyncio.to_thread(self.load_all)


def document_filename(path: str | Path) -> str:
    """Chunk store key for a workspace path: its basename."""

    return Path(str(path)).name


@lru_cache()
def get_workspace() -> Workspace:
    """Return the workspace configured through the environment."""

    return Workspace.from_env()


def reset_workspace_cache() -> None:
    get_workspace.cache_clear()  # type: ignore[attr-defined]


__all__ = [
    "DOCUMENT_EXTENSION",
    "Workspace",
    "WorkspaceError",
    "document_filename",
    "get_workspace",
    "reset_workspace_cache",
]
