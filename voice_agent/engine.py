"""
Voice agent engine.

Owns the per-session state (undo log, conversation log, usage guard) and
runs agent turns with last-utterance-wins semantics:

1. a new utterance cancels the turn in flight and waits for it to unwind
2. the new turn streams its completion
3. once the stream is complete the turn commits and its tool calls run in
   order; a committed turn is no longer interrupted by cancel()

Cancellation is never an error: a cancelled turn just produces nothing.
"""

from __future__ import annotations

import asyncio
import json
import time
import uuid
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .agent import AgentSession
from .cancellation import CancellationToken
from .config import EngineConfig, get_config
from .context import ConversationLog, ConversationMessage
from .controller import VoiceModeController
from .dispatcher import ContentTransformer, ToolDispatcher
from .errors import TransportError, classify_transport_error
from .instructions import get_system_prompt
from .resolver import SubjectResolver, Unresolved
from .router import TranscriptRouter, VoiceMode
from .transport import CompletionTransport
from .undo import Deletion, UndoLog, perform_undo
from .usage import UsageGuard
from .workspace import (
    FeedbackCues,
    InMemoryWindowEngine,
    InMemoryWorkspace,
    NullCapture,
    SpeechCapture,
    WindowEngine,
    Workspace,
)

logger = get_logger(LogComponent.ENGINE)

TEST_TRANSCRIPT_MARKERS = ("[AutoTest]", "[Test]")

DEV_MODE_RESPONSE = "Created thought (dev mode)"


@dataclass(frozen=True)
class EngineState:
    is_processing: bool = False
    last_response: Optional[str] = None
    streaming_text: str = ""
    error: Optional[str] = None
    error_category: Optional[str] = None


@dataclass
class AgentTurn:
    turn_id: str
    utterance: str
    token: CancellationToken = field(default_factory=CancellationToken)
    finished: asyncio.Event = field(default_factory=asyncio.Event)


StateListener = Callable[[EngineState], None]


class LoggingCues:
    """Feedback cues for hosts without audio; each cue is one log line."""

    def success(self) -> None:
        logger.debug("Cue: success")

    def error(self) -> None:
        logger.debug("Cue: error")

    def undo(self) -> None:
        logger.debug("Cue: undo")


class VoiceAgentEngine:
    """Processes utterances into agent turns and tool side effects."""

    def __init__(
        self,
        config: EngineConfig,
        workspace: Workspace,
        windows: WindowEngine,
        *,
        transport: Optional[CompletionTransport] = None,
        cues: Optional[FeedbackCues] = None,
        guard: Optional[UsageGuard] = None,
        system_prompt: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config
        self.workspace = workspace
        self.windows = windows
        self.session_id = session_id or f"koe_{uuid.uuid4().hex[:12]}"
        self.cues: FeedbackCues = cues or LoggingCues()
        self.emitter = EventEmitter(ObsComponent.ENGINE)

        self.transport = transport or CompletionTransport(config)
        self.agent = AgentSession(self.transport, config, system_prompt or get_system_prompt(config.persona))
        self.undo_log = UndoLog(config.undo_capacity)
        self.conversation = ConversationLog()
        self.resolver = SubjectResolver(workspace)
        self.dispatcher = ToolDispatcher(
            workspace,
            windows,
            self.undo_log,
            ContentTransformer(self.transport, config),
            self.resolver,
            history_provider=self.conversation.recent,
            session_id=self.session_id,
        )
        self.guard = guard or UsageGuard(
            rate_limit_per_minute=config.rate_limit_per_minute,
            cooldown_ms=config.cooldown_ms,
            session_cost_limit=config.session_cost_limit,
        )

        self.mode_provider: Callable[[], Optional[VoiceMode]] = lambda: None
        self._state = EngineState()
        self._listeners: List[StateListener] = []
        self._current: Optional[AgentTurn] = None

    # --- state ---

    @property
    def state(self) -> EngineState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def attach_controller(self, controller: VoiceModeController) -> None:
        """Let the set_voice_mode tool drive the controller and show its mode in context."""
        self.dispatcher.mode_switcher = controller
        self.mode_provider = lambda: controller.mode

    # --- turns ---

    async def process_transcript(self, text: str) -> None:
        """Run one utterance as an agent turn, cancelling any turn in flight."""
        if not text.strip():
            logger.debug("Ignoring blank utterance", utterance_length=len(text))
            return

        if any(marker in text for marker in TEST_TRANSCRIPT_MARKERS):
            logger.debug("Ignoring test transcript", utterance_length=len(text))
            self.emitter.emit("turn.skipped", session_id=self.session_id, reason="test_transcript")
            return

        refusal = self.guard.check()
        if refusal is not None:
            self._update(last_response=refusal)
            self.emitter.emit("turn.skipped", session_id=self.session_id, severity=Severity.WARN, reason="usage_limit")
            return
        self.guard.reserve()

        if self.config.dev_mode:
            await self._process_dev_mode(text)
            return

        turn = AgentTurn(turn_id=f"turn_{uuid.uuid4().hex[:12]}", utterance=text)
        previous, self._current = self._current, turn
        task: Optional[asyncio.Task] = None
        try:
            if previous is not None:
                if previous.token.cancel():
                    logger.info("Cancelled turn in flight", turn_id=previous.turn_id, next_turn_id=turn.turn_id)
                await previous.finished.wait()

            if turn.token.cancelled:
                self.emitter.emit(
                    "turn.cancelled",
                    session_id=self.session_id,
                    correlation_id=turn.turn_id,
                    stage="queued",
                )
                return

            task = asyncio.create_task(self._run_turn(turn))
            task.add_done_callback(lambda _t: self._finish(turn))
            turn.token.bind(task)
            try:
                await asyncio.wait({task})
            except asyncio.CancelledError:
                turn.token.cancel()
                raise
            if not task.cancelled():
                task.result()
        finally:
            if task is None:
                self._finish(turn)

    def _finish(self, turn: AgentTurn) -> None:
        turn.finished.set()
        if self._current is turn:
            self._current = None

    async def _process_dev_mode(self, text: str) -> None:
        logger.info("No API key, creating thought directly", utterance_length=len(text))
        await self.dispatcher.execute("create_thought", {"content": text})
        self._update(last_response=DEV_MODE_RESPONSE)

    async def _run_turn(self, turn: AgentTurn) -> None:
        log = logger.with_turn(turn.turn_id)
        self._update(is_processing=True, error=None, error_category=None, streaming_text="")

        history = self.conversation.recent(self.config.history_turns)
        self.conversation.add(ConversationMessage("user", turn.utterance))
        self.emitter.emit(
            "turn.started",
            session_id=self.session_id,
            correlation_id=turn.turn_id,
            utterance_length=len(turn.utterance),
            history_messages=len(history),
        )
        t_start = time.perf_counter()

        try:
            result, messages = await self.agent.run_turn(
                turn.utterance,
                self.workspace,
                history,
                turn.token,
                self._on_text,
                mode=self.mode_provider(),
                turn_id=turn.turn_id,
            )
            turn.token.commit()
        except asyncio.CancelledError:
            self._update(is_processing=False, streaming_text="")
            log.info("Turn cancelled")
            self.emitter.emit(
                "turn.cancelled",
                session_id=self.session_id,
                correlation_id=turn.turn_id,
                stage="streaming",
            )
            raise
        except Exception as e:
            category = classify_transport_error(e)
            if isinstance(e, TransportError):
                log.error("Turn failed", error=str(e), error_category=category, status_code=e.status)
            else:
                log.exception("Turn failed unexpectedly", error_category=category)
            self.cues.error()
            self._update(
                is_processing=False, last_response=None, streaming_text="", error=str(e), error_category=category
            )
            self.emitter.emit(
                "turn.failed",
                session_id=self.session_id,
                severity=Severity.ERROR,
                correlation_id=turn.turn_id,
                error_category=category,
                status_code=getattr(e, "status", None),
            )
            return

        input_chars = sum(len(m["content"]) for m in messages) + len(self.agent.system_prompt)
        output_chars = len(result.final_text) + len(
            json.dumps([{"name": i.name, "input": i.input} for i in result.tool_invocations])
        )
        self.guard.record_cost(input_chars, output_chars)

        records = await self.dispatcher.execute_all(result.tool_invocations, turn_id=turn.turn_id)
        if records:
            self.cues.success()

        reply = result.final_text or ", ".join(r.result for r in records)
        if reply:
            self.conversation.add(ConversationMessage("assistant", reply, tuple(records)))
        self._update(is_processing=False, last_response=reply, streaming_text="", error=None)

        self.emitter.emit(
            "turn.completed",
            session_id=self.session_id,
            correlation_id=turn.turn_id,
            text_length=len(result.final_text),
            tool_calls=len(records),
            latency_ms=int((time.perf_counter() - t_start) * 1000),
        )

    def _on_text(self, text: str, done: bool) -> None:
        self._update(streaming_text=text)

    def cancel(self) -> bool:
        """Cancel the turn in flight. Returns False if there is none or it already committed."""
        turn = self._current
        if turn is None:
            return False
        return turn.token.cancel()

    @property
    def current_turn_id(self) -> Optional[str]:
        return self._current.turn_id if self._current else None

    # --- undo and delete ---

    def can_undo(self) -> bool:
        return self.undo_log.can_undo()

    async def perform_undo(self) -> str:
        """Keyboard undo; shares the log with the agent's undo tool."""
        async with self.dispatcher.lock:
            had_entry = self.undo_log.can_undo()
            status = await perform_undo(self.undo_log, self.workspace, self.windows)
        if had_entry:
            self.cues.undo()
        self._update(last_response=status)
        self.emitter.emit("undo.performed", session_id=self.session_id, status=status, source="keyboard")
        return status

    async def delete_document(self, reference: object) -> str:
        """Delete a document and close its windows; undo restores the document."""
        resolution = self.resolver.resolve(reference)
        if isinstance(resolution, Unresolved):
            return "Thought not found"

        async with self.dispatcher.lock:
            document = self.workspace.get_document(resolution.document_id)
            if document is None:
                return "Thought not found"
            self.undo_log.push(Deletion(document.id, document))
            for binding in self.workspace.windows_for_document(document.id):
                await self.windows.close_window(binding.window_id)
            self.workspace.delete_document(document.id)

        logger.info("Thought deleted", document_id=document.id)
        return "Deleted thought"

    async def aclose(self) -> None:
        self.cancel()
        await self.transport.aclose()


def build_engine(
    config: Optional[EngineConfig] = None,
    workspace: Optional[InMemoryWorkspace] = None,
    windows: Optional[WindowEngine] = None,
    capture: Optional[SpeechCapture] = None,
    *,
    transport: Optional[CompletionTransport] = None,
    cues: Optional[FeedbackCues] = None,
) -> Tuple[VoiceAgentEngine, VoiceModeController]:
    """Wire an engine and its voice mode controller over a shared workspace."""
    config = config or get_config()
    workspace = workspace or InMemoryWorkspace()
    windows = windows or InMemoryWindowEngine(workspace)

    engine = VoiceAgentEngine(config, workspace, windows, transport=transport, cues=cues)
    router = TranscriptRouter(workspace, submit=engine.process_transcript)
    controller = VoiceModeController(capture or NullCapture(), router, engine.resolver, session_id=engine.session_id)
    engine.attach_controller(controller)
    return engine, controller
