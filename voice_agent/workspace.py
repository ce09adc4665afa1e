"""
Collaborator contracts and in-memory implementations.

The engine mutates documents and windows only through these protocols.
The in-memory classes back the tests and the demo control surface; a
desktop shell plugs in its own CRDT store and window engine instead.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

DOCUMENT_TYPES = ("note", "list", "outline")

PLACEMENTS = ("center", "top-left", "top-right", "bottom-left", "bottom-right", "left", "right")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_document_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class Document:
    """A user-authored content unit (note, list or outline)."""

    id: str
    content: str
    type: str = "note"
    tags: tuple[str, ...] = ()
    created_at: str = field(default_factory=_now_iso)
    modified_at: str = field(default_factory=_now_iso)


@dataclass(frozen=True)
class WindowBinding:
    """An open window showing one document."""

    window_id: str
    document_id: str
    display_index: int
    placement: str = "center"


class Workspace(Protocol):
    """Document store plus window-binding lookups."""

    def get_document(self, document_id: str) -> Optional[Document]: ...

    def create_document(self, document: Document) -> None: ...

    def update_document(self, document_id: str, **partial: Any) -> None: ...

    def delete_document(self, document_id: str) -> None: ...

    def list_documents(self) -> List[Document]: ...

    def focused_document_id(self) -> Optional[str]: ...

    def set_focus(self, document_id: Optional[str]) -> None: ...

    def window_for_display_index(self, index: int) -> Optional[WindowBinding]: ...

    def active_window(self) -> Optional[WindowBinding]: ...

    def windows_for_document(self, document_id: str) -> List[WindowBinding]: ...

    def list_windows(self) -> List[WindowBinding]: ...


class WindowEngine(Protocol):
    """Window placement engine."""

    async def create_window_for(self, document_id: str, placement: str = "center") -> str: ...

    async def move_window(self, window_id: str, placement: str) -> None: ...

    async def close_window(self, window_id: str) -> None: ...


class SpeechCapture(Protocol):
    """Native speech capture; fragments and errors are pushed into the controller."""

    def start_capture(self) -> None: ...

    def stop_capture(self) -> None: ...


class FeedbackCues(Protocol):
    """User-facing audio cues."""

    def success(self) -> None: ...

    def error(self) -> None: ...

    def undo(self) -> None: ...


class InMemoryWorkspace:
    """Dict-backed workspace with window bindings and focus tracking."""

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}
        self._windows: Dict[str, WindowBinding] = {}
        self._focused: Optional[str] = None
        self._next_display_index = 1

    # --- documents ---

    def get_document(self, document_id: str) -> Optional[Document]:
        return self._documents.get(document_id)

    def create_document(self, document: Document) -> None:
        self._documents[document.id] = document

    def update_document(self, document_id: str, **partial: Any) -> None:
        existing = self._documents.get(document_id)
        if existing is None:
            return
        partial.setdefault("modified_at", _now_iso())
        self._documents[document_id] = replace(existing, **partial)

    def delete_document(self, document_id: str) -> None:
        self._documents.pop(document_id, None)
        if self._focused == document_id:
            self._focused = None

    def list_documents(self) -> List[Document]:
        return list(self._documents.values())

    # --- focus ---

    def focused_document_id(self) -> Optional[str]:
        if self._focused and self._focused in self._documents:
            return self._focused
        return None

    def set_focus(self, document_id: Optional[str]) -> None:
        self._focused = document_id

    # --- window bindings ---

    def bind_window(self, window_id: str, document_id: str, placement: str) -> WindowBinding:
        binding = WindowBinding(
            window_id=window_id,
            document_id=document_id,
            display_index=self._next_display_index,
            placement=placement,
        )
        self._next_display_index += 1
        self._windows[window_id] = binding
        return binding

    def rebind_window(self, window_id: str, placement: str) -> None:
        binding = self._windows.get(window_id)
        if binding is not None:
            self._windows[window_id] = replace(binding, placement=placement)

    def unbind_window(self, window_id: str) -> None:
        self._windows.pop(window_id, None)

    def window_for_display_index(self, index: int) -> Optional[WindowBinding]:
        for binding in self._windows.values():
            if binding.display_index == index:
                return binding
        return None

    def active_window(self) -> Optional[WindowBinding]:
        focused = self.focused_document_id()
        if focused is None:
            return None
        windows = self.windows_for_document(focused)
        return windows[0] if windows else None

    def windows_for_document(self, document_id: str) -> List[WindowBinding]:
        return [w for w in self._windows.values() if w.document_id == document_id]

    def list_windows(self) -> List[WindowBinding]:
        return sorted(self._windows.values(), key=lambda w: w.display_index)


class InMemoryWindowEngine:
    """Window engine that only records bindings in an InMemoryWorkspace."""

    def __init__(self, workspace: InMemoryWorkspace):
        self._workspace = workspace
        self.closed: List[str] = []

    async def create_window_for(self, document_id: str, placement: str = "center") -> str:
        window_id = f"win_{uuid.uuid4().hex[:8]}"
        self._workspace.bind_window(window_id, document_id, placement)
        self._workspace.set_focus(document_id)
        return window_id

    async def move_window(self, window_id: str, placement: str) -> None:
        self._workspace.rebind_window(window_id, placement)

    async def close_window(self, window_id: str) -> None:
        self._workspace.unbind_window(window_id)
        self.closed.append(window_id)


class NullCapture:
    """Capture stand-in for hosts that push fragments themselves."""

    def __init__(self) -> None:
        self.active = False

    def start_capture(self) -> None:
        self.active = True

    def stop_capture(self) -> None:
        self.active = False
