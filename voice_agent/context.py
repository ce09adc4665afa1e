"""
Turn context.

Builds the message list for one agent turn from the conversation log and a
snapshot of the workspace. Document ids are shown as 8-character prefixes
and windows by their display index, which is how the agent refers back to
them in tool calls.
"""

from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .router import DictationMode, VoiceMode
from .workspace import Workspace

DEFAULT_LOG_SIZE = 100

DOCUMENT_PREVIEW_CHARS = 50
WINDOW_PREVIEW_CHARS = 40


@dataclass(frozen=True)
class ToolCallRecord:
    name: str
    input: Dict[str, Any]
    result: str


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    content: str
    tool_results: tuple[ToolCallRecord, ...] = ()
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class ConversationLog:
    """Bounded in-memory conversation history; oldest messages fall off."""

    def __init__(self, max_messages: int = DEFAULT_LOG_SIZE):
        self._messages: deque[ConversationMessage] = deque(maxlen=max_messages)

    def add(self, message: ConversationMessage) -> None:
        self._messages.append(message)

    def recent(self, limit: int) -> List[ConversationMessage]:
        if limit <= 0:
            return []
        return list(self._messages)[-limit:]

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)


def render_context_message(workspace: Workspace, utterance: str, mode: Optional[VoiceMode] = None) -> str:
    """
    Render the final user message of a turn.

    Layout:
        Current thoughts in workspace:
        - [1a2b3c4d] (note): first fifty characters...
        Open windows:
        - W1: first forty characters... [ACTIVE]
        [Voice mode: DICTATE - targeting W1]

        User says: <utterance>
    """
    documents = workspace.list_documents()

    window_context = ""
    windows = workspace.list_windows()
    if windows:
        active = workspace.active_window()
        lines = []
        for binding in windows:
            document = workspace.get_document(binding.document_id)
            preview = document.content[:WINDOW_PREVIEW_CHARS] if document and document.content else "(empty)"
            marker = " [ACTIVE]" if active is not None and active.window_id == binding.window_id else ""
            lines.append(f"- W{binding.display_index}: {preview}...{marker}")
        window_context = "\nOpen windows:\n" + "\n".join(lines)

    mode_context = ""
    if isinstance(mode, DictationMode):
        mode_context = f"\n[Voice mode: DICTATE - targeting {_window_label(workspace, mode.target_id)}]"

    if documents:
        thought_lines = "\n".join(
            f"- [{d.id[:8]}] ({d.type}): {d.content[:DOCUMENT_PREVIEW_CHARS]}..." for d in documents
        )
        return f"Current thoughts in workspace:\n{thought_lines}{window_context}{mode_context}\n\nUser says: {utterance}"
    return f"{window_context}{mode_context}\n\nUser says: {utterance}"


def _window_label(workspace: Workspace, document_id: str) -> str:
    windows = workspace.windows_for_document(document_id)
    if windows:
        return f"W{windows[0].display_index}"
    return f"[{document_id[:8]}]"


def build_messages(
    workspace: Workspace,
    utterance: str,
    history: List[ConversationMessage],
    mode: Optional[VoiceMode] = None,
) -> List[Dict[str, str]]:
    """History as role/content pairs followed by the rendered context message."""
    messages = [{"role": m.role, "content": m.content} for m in history]
    messages.append({"role": "user", "content": render_context_message(workspace, utterance, mode)})
    return messages


def render_transcript(history: List[ConversationMessage]) -> str:
    """Plain `role: content` lines, used as source text for list generation."""
    return "\n".join(f"{m.role}: {m.content}" for m in history)
