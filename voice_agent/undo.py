"""
Bounded undo log shared by keyboard undo and the agent's undo tool.

Entries are pushed before the mutation they describe, so each one holds
the pre-mutation value. When the log is full the oldest entry is dropped
without checking whether its document still exists.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Optional, Union

from logging_setup import get_logger, Component

from .workspace import Document, WindowEngine, Workspace

logger = get_logger(Component.UNDO_LOG)

DEFAULT_CAPACITY = 50

NOTHING_TO_UNDO = "Nothing to undo"


@dataclass(frozen=True)
class Creation:
    document_id: str


@dataclass(frozen=True)
class Mutation:
    document_id: str
    prior_content: str


@dataclass(frozen=True)
class Deletion:
    document_id: str
    snapshot: Document


UndoEntry = Union[Creation, Mutation, Deletion]


class UndoLog:
    """Bounded LIFO stack of undo entries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._entries: deque[UndoEntry] = deque(maxlen=capacity)
        self.capacity = capacity

    def push(self, entry: UndoEntry) -> None:
        if len(self._entries) == self.capacity:
            logger.debug("Undo log full, evicting oldest entry", capacity=self.capacity)
        self._entries.append(entry)

    def pop(self) -> Optional[UndoEntry]:
        if not self._entries:
            return None
        return self._entries.pop()

    def can_undo(self) -> bool:
        return bool(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


async def perform_undo(log: UndoLog, workspace: Workspace, windows: WindowEngine) -> str:
    """
    Pop one entry and apply its inverse.

    Returns a short status string. An empty log is a no-op.
    """
    entry = log.pop()
    if entry is None:
        return NOTHING_TO_UNDO

    if isinstance(entry, Creation):
        bound = workspace.windows_for_document(entry.document_id)
        workspace.delete_document(entry.document_id)
        for binding in bound:
            await windows.close_window(binding.window_id)
        status = "Undid creation"
    elif isinstance(entry, Mutation):
        workspace.update_document(entry.document_id, content=entry.prior_content)
        status = "Undid change"
    elif isinstance(entry, Deletion):
        workspace.create_document(entry.snapshot)
        status = "Restored deleted thought"
    else:
        status = "Undo failed"

    logger.info(
        "Undo applied",
        entry_type=type(entry).__name__,
        document_id=entry.document_id,
        remaining=len(log),
    )
    return status
