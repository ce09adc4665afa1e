"""
Tool dispatcher.

Executes the tool calls of one agent turn against the workspace, strictly
one after another and in the order their blocks completed in the stream.
Every creation or change pushes its undo entry (holding the pre-change
value) before the change is applied.

Domain failures (unknown subject, missing window) come back as short
status strings. Unexpected exceptions in a tool are logged and reported as
"Tool <name> failed" so the rest of the batch still runs.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Union

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .config import EngineConfig
from .context import ConversationMessage, ToolCallRecord, render_transcript
from .resolver import Resolved, SubjectResolver, Unresolved
from .stream import ToolInvocation
from .tools import (
    CONDENSE_INSTRUCTION,
    DEFAULT_RELATIONSHIP,
    EXPAND_MAX_TOKENS,
    LIST_SOURCE_MESSAGES,
    expand_instruction,
    link_note,
    list_instruction,
    rewrite_instruction,
    transform_prompt,
)
from .transport import CompletionTransport
from .undo import Creation, Mutation, UndoLog, perform_undo
from .workspace import DOCUMENT_TYPES, PLACEMENTS, Document, WindowEngine, Workspace, new_document_id

logger = get_logger(LogComponent.TOOL_DISPATCHER)

HistoryProvider = Callable[[int], List[ConversationMessage]]


class ModeSwitcher(Protocol):
    """The voice mode controller, as seen by the set_voice_mode tool."""

    def enter_dictation(self, reference: object = "active") -> bool: ...

    def enter_command_mode(self) -> None: ...


class ContentTransformer:
    """
    Non-streaming rewrite of a piece of content.

    Any failure returns the original content unchanged, so a broken
    transform never loses the user's text.
    """

    def __init__(self, transport: Optional[CompletionTransport], config: EngineConfig):
        self._transport = transport
        self._config = config

    async def transform(self, content: str, instruction: str, max_tokens: Optional[int] = None) -> str:
        if self._transport is None or self._config.dev_mode:
            return content

        payload = {
            "model": self._config.model,
            "max_tokens": max_tokens or self._config.transform_max_tokens,
            "messages": [{"role": "user", "content": transform_prompt(instruction, content)}],
        }
        t_start = time.perf_counter()
        try:
            data = await self._transport.complete(payload)
            text = data["content"][0]["text"]
        except Exception as e:
            logger.warning("Transform failed, keeping original content", error=str(e), error_type=type(e).__name__)
            return content

        logger.debug(
            "Transform finished",
            latency_ms=int((time.perf_counter() - t_start) * 1000),
            input_length=len(content),
            output_length=len(text or ""),
        )
        return text or content


def _failure(resolution: Unresolved) -> str:
    reason = resolution.reason
    return reason[:1].upper() + reason[1:]


class ToolDispatcher:
    """Runs tool invocations one at a time against the workspace."""

    def __init__(
        self,
        workspace: Workspace,
        windows: WindowEngine,
        undo_log: UndoLog,
        transformer: ContentTransformer,
        resolver: Optional[SubjectResolver] = None,
        *,
        history_provider: Optional[HistoryProvider] = None,
        mode_switcher: Optional[ModeSwitcher] = None,
        session_id: Optional[str] = None,
    ):
        self._workspace = workspace
        self._windows = windows
        self.undo_log = undo_log
        self._transformer = transformer
        self._resolver = resolver or SubjectResolver(workspace)
        self._history_provider = history_provider
        self.mode_switcher = mode_switcher
        self.session_id = session_id or f"dispatch_{uuid.uuid4().hex[:12]}"
        self.emitter = EventEmitter(ObsComponent.TOOL_DISPATCHER)
        self._lock = asyncio.Lock()

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[str]]] = {
            "create_thought": self._create_thought,
            "update_thought": self._update_thought,
            "move_window": self._move_window,
            "close_window": self._close_window,
            "condense": self._condense,
            "rewrite": self._rewrite,
            "expand": self._expand,
            "generate_list": self._generate_list,
            "link_thoughts": self._link_thoughts,
            "undo": self._undo,
            "set_voice_mode": self._set_voice_mode,
            "focus_window": self._focus_window,
        }

    @property
    def lock(self) -> asyncio.Lock:
        """Held while tools run; keyboard undo and delete take it too."""
        return self._lock

    async def execute(self, name: str, args: Dict[str, Any], *, turn_id: Optional[str] = None) -> str:
        async with self._lock:
            return await self._execute(name, args, turn_id)

    async def execute_all(
        self,
        invocations: Iterable[ToolInvocation],
        *,
        turn_id: Optional[str] = None,
    ) -> List[ToolCallRecord]:
        """Execute a turn's invocations in order; each one sees the previous one's writes."""
        records: List[ToolCallRecord] = []
        async with self._lock:
            for invocation in invocations:
                result = await self._execute(invocation.name, invocation.input, turn_id)
                records.append(ToolCallRecord(invocation.name, dict(invocation.input), result))
        return records

    async def _execute(self, name: str, args: Dict[str, Any], turn_id: Optional[str]) -> str:
        log = logger.with_turn(turn_id) if turn_id else logger
        handler = self._handlers.get(name)
        t_start = time.perf_counter()

        if handler is None:
            log.warning("Unknown tool requested", tool=name)
            result = f"Unknown tool: {name}"
            outcome = "unknown"
        else:
            try:
                result = await handler(args or {})
                outcome = "ok"
            except asyncio.CancelledError:
                raise
            except Exception:
                log.exception("Tool raised", tool=name)
                result = f"Tool {name} failed"
                outcome = "failed"

        latency_ms = int((time.perf_counter() - t_start) * 1000)
        log.info("Tool executed", tool=name, outcome=outcome, latency_ms=latency_ms)
        self.emitter.emit(
            "tool.executed",
            session_id=self.session_id,
            severity=Severity.ERROR if outcome == "failed" else Severity.INFO,
            correlation_id=turn_id,
            tool=name,
            outcome=outcome,
            result_length=len(result),
            latency_ms=latency_ms,
        )
        return result

    # --- helpers ---

    def _resolve_document(self, reference: object) -> Union[Document, Unresolved]:
        resolution = self._resolver.resolve(reference)
        if isinstance(resolution, Unresolved):
            return resolution
        document = self._workspace.get_document(resolution.document_id)
        if document is None:
            return Unresolved("thought not found")
        return document

    def _resolve_window(self, args: Dict[str, Any]) -> Union[Resolved, str]:
        resolution = self._resolver.resolve(args.get("thought_id", args.get("window")))
        if isinstance(resolution, Unresolved):
            return _failure(resolution)
        if resolution.window_id is None:
            return "Window not found"
        return resolution

    async def _create_document(self, content: str, doc_type: str, placement: str) -> str:
        if doc_type not in DOCUMENT_TYPES:
            doc_type = "note"
        if placement not in PLACEMENTS:
            placement = "center"
        document = Document(id=new_document_id(), content=content, type=doc_type)
        self.undo_log.push(Creation(document.id))
        self._workspace.create_document(document)
        await self._windows.create_window_for(document.id, placement)
        self._workspace.set_focus(document.id)
        return document.id

    def _replace_content(self, document_id: str, content: str) -> bool:
        """Push the current content as a Mutation, then write the new content."""
        current = self._workspace.get_document(document_id)
        if current is None:
            return False
        self.undo_log.push(Mutation(document_id, current.content))
        self._workspace.update_document(document_id, content=content)
        return True

    # --- tools ---

    async def _create_thought(self, args: Dict[str, Any]) -> str:
        await self._create_document(
            str(args.get("content", "")),
            args.get("type") or "note",
            args.get("position") or "center",
        )
        return "Created thought"

    async def _update_thought(self, args: Dict[str, Any]) -> str:
        document = self._resolve_document(args.get("thought_id"))
        if isinstance(document, Unresolved):
            return _failure(document)
        addition = str(args.get("content", ""))
        content = f"{document.content}\n{addition}" if args.get("append") else addition
        self._replace_content(document.id, content)
        return "Updated thought"

    async def _move_window(self, args: Dict[str, Any]) -> str:
        resolution = self._resolve_window(args)
        if isinstance(resolution, str):
            return resolution
        position = args.get("position")
        if position not in PLACEMENTS:
            return f"Unknown position: {position}"
        await self._windows.move_window(resolution.window_id, position)
        return f"Moved W{resolution.display_index} to {position}"

    async def _close_window(self, args: Dict[str, Any]) -> str:
        resolution = self._resolve_window(args)
        if isinstance(resolution, str):
            return resolution
        await self._windows.close_window(resolution.window_id)
        return f"Closed W{resolution.display_index}"

    async def _focus_window(self, args: Dict[str, Any]) -> str:
        resolution = self._resolve_window(args)
        if isinstance(resolution, str):
            return resolution
        self._workspace.set_focus(resolution.document_id)
        return f"Focused W{resolution.display_index}"

    async def _condense(self, args: Dict[str, Any]) -> str:
        document = self._resolve_document(args.get("thought_id"))
        if isinstance(document, Unresolved):
            return _failure(document)
        condensed = await self._transformer.transform(document.content, CONDENSE_INSTRUCTION)
        if args.get("target") == "new":
            await self._create_document(condensed, "note", "top-right")
            return "Created condensed version"
        if not self._replace_content(document.id, condensed):
            return "Thought not found"
        return "Condensed thought"

    async def _rewrite(self, args: Dict[str, Any]) -> str:
        document = self._resolve_document(args.get("thought_id"))
        if isinstance(document, Unresolved):
            return _failure(document)
        rewritten = await self._transformer.transform(document.content, rewrite_instruction(str(args.get("style", ""))))
        if args.get("target") == "new":
            await self._create_document(rewritten, document.type, "right")
            return "Created rewritten version"
        if not self._replace_content(document.id, rewritten):
            return "Thought not found"
        return "Rewrote thought"

    async def _expand(self, args: Dict[str, Any]) -> str:
        document = self._resolve_document(args.get("thought_id"))
        if isinstance(document, Unresolved):
            return _failure(document)
        expanded = await self._transformer.transform(
            document.content,
            expand_instruction(args.get("focus")),
            EXPAND_MAX_TOKENS,
        )
        if not self._replace_content(document.id, expanded):
            return "Thought not found"
        return "Expanded thought"

    async def _generate_list(self, args: Dict[str, Any]) -> str:
        source = args.get("source")
        if not source or source == "conversation":
            history = self._history_provider(LIST_SOURCE_MESSAGES) if self._history_provider else []
            source_content = render_transcript(history)
        else:
            document = self._resolve_document(source)
            if isinstance(document, Unresolved):
                return _failure(document)
            source_content = document.content

        prompt = str(args.get("prompt", ""))
        items = await self._transformer.transform(source_content, list_instruction(prompt))
        await self._create_document(f"{prompt}:\n{items}", "list", args.get("position") or "center")
        return "Generated list"

    async def _link_thoughts(self, args: Dict[str, Any]) -> str:
        source = self._resolve_document(args.get("source_id"))
        if isinstance(source, Unresolved):
            return _failure(source)
        target = self._resolve_document(args.get("target_id"))
        if isinstance(target, Unresolved):
            return _failure(target)
        relationship = args.get("relationship") or DEFAULT_RELATIONSHIP
        self._replace_content(source.id, source.content + link_note(relationship, target.content, target.id))
        return "Linked thoughts"

    async def _undo(self, args: Dict[str, Any]) -> str:
        return await perform_undo(self.undo_log, self._workspace, self._windows)

    async def _set_voice_mode(self, args: Dict[str, Any]) -> str:
        if self.mode_switcher is None:
            return "Voice mode switching unavailable"

        mode = args.get("mode")
        if mode == "command":
            self.mode_switcher.enter_command_mode()
            return "Command mode - ready for voice commands"
        if mode != "dictate":
            return f"Unknown voice mode: {mode}"

        resolution = self._resolver.resolve(args.get("target_window") or "active")
        if isinstance(resolution, Unresolved) or not self.mode_switcher.enter_dictation(resolution.document_id):
            return "Target window not found"
        label = f"W{resolution.display_index}" if resolution.display_index is not None else f"[{resolution.document_id[:8]}]"
        return f"Dictation mode - speaking will append to {label}"
