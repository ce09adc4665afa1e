"""
Voice mode controller.

Top-level state machine for voice input. It owns the capture lifecycle
(idle ↔ listening) and the voice mode (command ↔ dictation), and hands
every fragment to the transcript router.

Fragment handling is synchronous: fragments can arrive much faster than an
agent turn completes, so nothing here waits on the network.
"""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from logging_setup import get_logger, Component as LogComponent
from observability.events import Component as ObsComponent, EventEmitter, Severity

from .resolver import Resolved, SubjectResolver
from .router import (
    CommandMode,
    DictationMode,
    RouteOutcome,
    TranscriptFragment,
    TranscriptRouter,
    VoiceMode,
)
from .workspace import SpeechCapture

logger = get_logger(LogComponent.VOICE_CONTROLLER)

# Capture errors containing this are normal shutdown notices.
BENIGN_ERROR_MARKER = "stopped"


class VoicePhase(str, Enum):
    IDLE = "idle"
    LISTENING_COMMAND = "listening_command"
    LISTENING_DICTATION = "listening_dictation"


class VoiceModeController:
    """Selects between dictation and command routing for incoming speech."""

    def __init__(
        self,
        capture: SpeechCapture,
        router: TranscriptRouter,
        resolver: SubjectResolver,
        *,
        session_id: Optional[str] = None,
    ):
        self._capture = capture
        self.router = router
        self._resolver = resolver
        self.session_id = session_id or f"voice_{uuid.uuid4().hex[:12]}"
        self.emitter = EventEmitter(ObsComponent.VOICE_CONTROLLER)

        self.listening = False
        self.mode: VoiceMode = CommandMode()
        self.last_transcript = ""
        self.error: Optional[str] = None

    @property
    def phase(self) -> VoicePhase:
        if not self.listening:
            return VoicePhase.IDLE
        if isinstance(self.mode, DictationMode):
            return VoicePhase.LISTENING_DICTATION
        return VoicePhase.LISTENING_COMMAND

    # --- capture lifecycle ---

    def start(self) -> None:
        if self.listening:
            return
        self._capture.start_capture()
        self.listening = True
        self.error = None
        self.emitter.emit("voice.capture_started", session_id=self.session_id, mode=self._mode_name())

    def stop(self) -> None:
        if not self.listening:
            return
        self._capture.stop_capture()
        self.listening = False
        self.emitter.emit("voice.capture_stopped", session_id=self.session_id)

    # --- fragments ---

    def handle_fragment(self, fragment: TranscriptFragment) -> Optional[RouteOutcome]:
        """Route one fragment. Fragments that arrive while idle are ignored."""
        if not self.listening:
            return None

        self.last_transcript = fragment.text
        outcome = self.router.route(fragment, self.mode)

        if outcome is RouteOutcome.EXIT_DICTATION:
            self._set_mode(CommandMode(), reason="exit_phrase")
        elif outcome is RouteOutcome.DICTATED:
            self.emitter.emit(
                "dictation.appended",
                session_id=self.session_id,
                target_id=self.mode.target_id if isinstance(self.mode, DictationMode) else None,
                fragment_length=len(fragment.text),
            )
        return outcome

    def handle_capture_error(self, message: str) -> None:
        if BENIGN_ERROR_MARKER in message:
            logger.debug("Ignoring benign capture notice", notice=message)
            return
        self.error = message
        logger.error("Speech capture error", error=message)
        self.emitter.emit(
            "voice.capture_error",
            session_id=self.session_id,
            severity=Severity.ERROR,
            error=message,
        )

    # --- mode switching ---

    def enter_dictation(self, reference: object = "active") -> bool:
        """
        Switch to dictation into the referenced document.

        The request is rejected, and the mode left as it was, when the
        reference does not resolve to an existing document.
        """
        resolution = self._resolver.resolve(reference)
        if not isinstance(resolution, Resolved):
            logger.info("Dictation entry rejected", reason=resolution.reason, mode=self._mode_name())
            return False
        self._set_mode(DictationMode(resolution.document_id), reason="dictation_request")
        return True

    def enter_command_mode(self) -> None:
        self._set_mode(CommandMode(), reason="command_request")

    def _set_mode(self, mode: VoiceMode, *, reason: str) -> None:
        if mode == self.mode:
            return
        previous = self._mode_name()
        self.mode = mode
        self.emitter.emit(
            "voice.mode_changed",
            session_id=self.session_id,
            from_mode=previous,
            to_mode=self._mode_name(),
            reason=reason,
        )

    def _mode_name(self) -> str:
        return "dictation" if isinstance(self.mode, DictationMode) else "command"

    # --- pending command buffer ---

    @property
    def pending_text(self) -> str:
        return self.router.pending.text

    async def send_pending(self) -> Optional[str]:
        return await self.router.send_pending()

    def clear_pending(self) -> None:
        self.router.clear_pending()
