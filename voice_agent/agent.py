"""
Agent session: one streamed completion per utterance.

Builds the request from the workspace snapshot and recent history, streams
it through the transport and decodes text and tool calls as they arrive.
Tool calls are returned, not executed; the engine hands them to the
dispatcher once the stream has finished.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

from logging_setup import get_logger, Component

from .cancellation import CancellationToken
from .config import EngineConfig
from .context import ConversationMessage, build_messages
from .router import VoiceMode
from .stream import TextCallback, TurnResult, decode_stream
from .tools import TOOL_SCHEMAS
from .transport import CompletionTransport
from .workspace import Workspace


class AgentSession:
    """Runs agent turns against the completion endpoint."""

    def __init__(self, transport: CompletionTransport, config: EngineConfig, system_prompt: str):
        self._transport = transport
        self._config = config
        self.system_prompt = system_prompt

    def build_payload(self, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "model": self._config.model,
            "max_tokens": self._config.max_tokens,
            "system": self.system_prompt,
            "tools": TOOL_SCHEMAS,
            "stream": True,
            "messages": messages,
        }

    async def run_turn(
        self,
        utterance: str,
        workspace: Workspace,
        history: List[ConversationMessage],
        token: CancellationToken,
        on_text: Optional[TextCallback] = None,
        *,
        mode: Optional[VoiceMode] = None,
        turn_id: Optional[str] = None,
    ) -> tuple[TurnResult, List[Dict[str, str]]]:
        """
        Stream one turn and return its decoded result with the request messages.

        Raises asyncio.CancelledError if the token is cancelled before the
        stream completes, and TransportError for request failures.
        """
        log = get_logger(Component.AGENT_SESSION, turn_id=turn_id)
        messages = build_messages(workspace, utterance, history, mode)
        payload = self.build_payload(messages)

        log.info(
            "Turn request",
            model=self._config.model,
            history_messages=len(history),
            document_count=len(workspace.list_documents()),
            utterance_length=len(utterance),
        )
        log.debug_pii("Turn utterance", utterance=utterance)

        t_start = time.perf_counter()
        result = await decode_stream(self._transport.stream_lines(payload), on_text, token)

        log.info(
            "Turn stream finished",
            latency_ms=int((time.perf_counter() - t_start) * 1000),
            text_length=len(result.final_text),
            tool_calls=len(result.tool_invocations),
        )
        return result, messages
