"""
Transcript routing.

Each fragment goes one of two ways depending on the voice mode:
- command mode: finalized text accumulates in the pending command buffer,
  which is later sent to the agent as one utterance
- dictation mode: finalized text is punctuated and appended straight to
  the target document, unless it contains an exit phrase
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterable, List, Optional, Tuple, Union

from logging_setup import get_logger, Component

from .punctuation import PunctuationMapper, append_with_separator
from .workspace import Workspace

logger = get_logger(Component.TRANSCRIPT_ROUTER)

EXIT_PHRASES: Tuple[str, ...] = ("stop dictating", "stop dictation", "command mode", "hey koe")


@dataclass(frozen=True)
class TranscriptFragment:
    """One speech-to-text result; interim results have is_final=False."""

    text: str
    is_final: bool = False


@dataclass(frozen=True)
class CommandMode:
    pass


@dataclass(frozen=True)
class DictationMode:
    target_id: str


VoiceMode = Union[CommandMode, DictationMode]


class RouteOutcome(str, Enum):
    """What happened to a routed fragment."""

    BUFFERED = "buffered"
    DICTATED = "dictated"
    EXIT_DICTATION = "exit_dictation"
    INTERIM = "interim"
    TARGET_MISSING = "target_missing"
    EMPTY = "empty"


class PendingCommandBuffer:
    """Finalized command-mode text, space-joined in arrival order."""

    def __init__(self) -> None:
        self._parts: List[str] = []

    def append(self, text: str) -> None:
        self._parts.append(text)

    @property
    def text(self) -> str:
        return " ".join(self._parts)

    def clear(self) -> None:
        self._parts.clear()

    def take(self) -> str:
        text = self.text
        self.clear()
        return text

    def __bool__(self) -> bool:
        return bool(self.text.strip())


class TranscriptRouter:
    """Routes fragments into the pending buffer or a dictation target."""

    def __init__(
        self,
        workspace: Workspace,
        submit: Optional[Callable[[str], Awaitable[object]]] = None,
        *,
        exit_phrases: Iterable[str] = EXIT_PHRASES,
        punctuation: Optional[PunctuationMapper] = None,
    ):
        self._workspace = workspace
        self._submit = submit
        self.exit_phrases = tuple(p.lower() for p in exit_phrases)
        self.punctuation = punctuation or PunctuationMapper()
        self.pending = PendingCommandBuffer()

    def route(self, fragment: TranscriptFragment, mode: VoiceMode) -> RouteOutcome:
        if isinstance(mode, DictationMode):
            return self._route_dictation(fragment, mode.target_id)
        return self._route_command(fragment)

    def _route_command(self, fragment: TranscriptFragment) -> RouteOutcome:
        if not fragment.is_final:
            return RouteOutcome.INTERIM
        self.pending.append(fragment.text)
        return RouteOutcome.BUFFERED

    def _route_dictation(self, fragment: TranscriptFragment, target_id: str) -> RouteOutcome:
        if self.contains_exit_phrase(fragment.text):
            return RouteOutcome.EXIT_DICTATION
        if not fragment.is_final:
            return RouteOutcome.INTERIM

        document = self._workspace.get_document(target_id)
        if document is None:
            logger.warning("Dictation target no longer exists", target_id=target_id)
            return RouteOutcome.TARGET_MISSING

        addition = self.punctuation.apply(fragment.text)
        if not addition:
            return RouteOutcome.EMPTY

        self._workspace.update_document(
            target_id,
            content=append_with_separator(document.content, addition),
        )
        logger.debug("Dictation appended", target_id=target_id, appended_length=len(addition))
        return RouteOutcome.DICTATED

    def contains_exit_phrase(self, text: str) -> bool:
        lowered = text.lower()
        return any(phrase in lowered for phrase in self.exit_phrases)

    async def send_pending(self) -> Optional[str]:
        """
        Send the pending buffer as one utterance and clear it.

        Returns the text sent, or None when there was nothing to send.
        """
        if not self.pending:
            return None
        text = self.pending.take()
        if self._submit is not None:
            await self._submit(text)
        return text

    def clear_pending(self) -> None:
        self.pending.clear()
