"""
Subject reference resolution.

Tools and dictation entry name their subject symbolically: "active", a
window display index ("2", "W2"), a document id or a unique id prefix as
shown in the agent context. resolve() turns that into a concrete document
(and window, when one is open) or an explicit Unresolved result.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from .workspace import Workspace

ACTIVE = "active"

_DISPLAY_INDEX = re.compile(r"^[Ww]?(\d+)$")

# Context lines show 8-character id prefixes; shorter ones are too ambiguous.
MIN_PREFIX_LENGTH = 4


@dataclass(frozen=True)
class Resolved:
    document_id: str
    window_id: Optional[str] = None
    display_index: Optional[int] = None


@dataclass(frozen=True)
class Unresolved:
    reason: str


Resolution = Union[Resolved, Unresolved]


class SubjectResolver:
    """Resolves symbolic subject references against a workspace."""

    def __init__(self, workspace: Workspace):
        self._workspace = workspace

    def resolve(self, reference: object) -> Resolution:
        if reference is None:
            return Unresolved("missing reference")
        ref = str(reference).strip()
        if not ref:
            return Unresolved("missing reference")

        if ref.lower() == ACTIVE:
            return self._resolve_active()

        match = _DISPLAY_INDEX.match(ref)
        if match:
            binding = self._workspace.window_for_display_index(int(match.group(1)))
            if binding is not None:
                return Resolved(binding.document_id, binding.window_id, binding.display_index)
            # Bare digits may also be an id prefix ("12345678" in context lines)
            document_id = None if ref[0] in "Ww" else self._match_document_id(ref)
            if document_id is None:
                return Unresolved(f"no window W{match.group(1)}")
            return self._with_window(document_id)

        document_id = self._match_document_id(ref)
        if document_id is None:
            return Unresolved(f"unknown thought {ref}")
        return self._with_window(document_id)

    def _resolve_active(self) -> Resolution:
        focused = self._workspace.focused_document_id()
        if focused is None:
            return Unresolved("no active thought")
        return self._with_window(focused)

    def _with_window(self, document_id: str) -> Resolved:
        windows = self._workspace.windows_for_document(document_id)
        if not windows:
            return Resolved(document_id)
        return Resolved(document_id, windows[0].window_id, windows[0].display_index)

    def _match_document_id(self, ref: str) -> Optional[str]:
        if self._workspace.get_document(ref) is not None:
            return ref
        if len(ref) < MIN_PREFIX_LENGTH:
            return None
        candidates = [d.id for d in self._workspace.list_documents() if d.id.startswith(ref)]
        if len(candidates) == 1:
            return candidates[0]
        return None
