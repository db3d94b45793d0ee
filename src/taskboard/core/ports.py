# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync engine.

The engine depends on Protocols instead of concrete implementations.
This keeps the remote store and local cache swappable and makes testing easier.
"""

from typing import Protocol

from ..board.models import Task
from ..remote.github_client import ReadResult, WriteResult


class DocumentStore(Protocol):
    """Whole-collection versioned storage (GitHub contents API in production)."""

    async def read(self) -> ReadResult: ...

    async def write(self, tasks: list[Task], revision: str | None) -> WriteResult: ...


class TaskCache(Protocol):
    """Synchronous local mirror of the collection."""

    def load(self) -> list[Task]: ...

    def save(self, tasks: list[Task]) -> bool: ...
