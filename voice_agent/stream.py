"""
Streaming completion decoder.

Consumes the server-sent-event lines of one streamed completion and
extracts two things as they arrive:
- visible text, re-emitted through a callback as a growing prefix
- tool invocations, whose JSON arguments arrive in fragments and only
  count once their block closes and the buffered text parses

Frame shapes (one JSON object per `data:` line, `[DONE]` ends the stream):
    content_block_start  {"index", "content_block": {"type": "tool_use", "name", "input"}}
    content_block_delta  {"index", "delta": {"type": "text_delta", "text"}}
                         {"index", "delta": {"type": "input_json_delta", "partial_json"}}
    content_block_stop   {"index"}
    error                {"error": {"type", "message"}}
"""

from __future__ import annotations

import contextlib
import json
from dataclasses import dataclass, field
from typing import Any, AsyncIterable, Callable, Dict, List, Optional

from logging_setup import get_logger, Component

from .cancellation import CancellationToken
from .errors import TransportError

logger = get_logger(Component.AGENT_SESSION)

DONE_SENTINEL = "[DONE]"

TextCallback = Callable[[str, bool], None]


@dataclass(frozen=True)
class ToolInvocation:
    name: str
    input: Dict[str, Any]


@dataclass
class TurnResult:
    final_text: str
    tool_invocations: List[ToolInvocation] = field(default_factory=list)


class ToolCallAccumulator:
    """Buffers the argument JSON of one open tool_use block."""

    def __init__(self, name: str, initial_input: Optional[Dict[str, Any]] = None):
        self.name = name
        self._initial_input = initial_input if isinstance(initial_input, dict) else {}
        self._parts: List[str] = []

    def feed(self, partial_json: str) -> None:
        self._parts.append(partial_json)

    @property
    def buffer(self) -> str:
        return "".join(self._parts)

    def close(self) -> Optional[ToolInvocation]:
        """Parse the buffer. Returns None if it is not a JSON object."""
        raw = self.buffer
        if not raw.strip():
            # Tools without arguments may stream no JSON at all.
            return ToolInvocation(self.name, dict(self._initial_input))
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Dropping tool call with malformed arguments", tool=self.name, buffer_length=len(raw))
            return None
        if not isinstance(parsed, dict):
            logger.debug("Dropping tool call with non-object arguments", tool=self.name)
            return None
        return ToolInvocation(self.name, parsed)


class StreamDecoder:
    """Incremental decoder for one turn's event stream."""

    def __init__(self, on_text: Optional[TextCallback] = None):
        self._on_text = on_text
        self._open: Dict[int, ToolCallAccumulator] = {}
        self.text = ""
        self.invocations: List[ToolInvocation] = []
        self.finished = False

    def feed_line(self, line: str) -> bool:
        """
        Feed one SSE line. Returns False once the stream is over.

        Non-data lines (event names, comments, keep-alives) and frames that
        are not valid JSON are skipped.
        """
        line = line.rstrip("\r\n")
        if not line.startswith("data:"):
            return True
        data = line[5:].lstrip(" ")
        if data == DONE_SENTINEL:
            return False
        try:
            event = json.loads(data)
        except json.JSONDecodeError:
            return True
        if isinstance(event, dict):
            self.feed_event(event)
        return True

    def feed_event(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        index = event.get("index", 0)

        if event_type == "content_block_start":
            block = event.get("content_block") or {}
            if block.get("type") == "tool_use":
                self._open[index] = ToolCallAccumulator(block.get("name", ""), block.get("input"))

        elif event_type == "content_block_delta":
            delta = event.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                self.text += delta.get("text", "")
                if self._on_text is not None:
                    self._on_text(self.text, False)
            elif delta_type == "input_json_delta":
                accumulator = self._open.get(index)
                if accumulator is not None:
                    accumulator.feed(delta.get("partial_json", ""))

        elif event_type == "content_block_stop":
            accumulator = self._open.pop(index, None)
            if accumulator is not None:
                invocation = accumulator.close()
                if invocation is not None:
                    self.invocations.append(invocation)

        elif event_type == "error":
            error = event.get("error") or {}
            message = error.get("message") or error.get("type") or "stream error"
            raise TransportError(f"Stream error: {message}")

    def finish(self) -> TurnResult:
        """Close the stream: blocks still open are dropped, text is final."""
        if self._open:
            logger.debug("Dropping unterminated tool blocks", count=len(self._open))
            self._open.clear()
        self.finished = True
        if self._on_text is not None:
            self._on_text(self.text, True)
        return TurnResult(final_text=self.text, tool_invocations=list(self.invocations))


async def decode_stream(
    lines: AsyncIterable[str],
    on_text: Optional[TextCallback] = None,
    token: Optional[CancellationToken] = None,
) -> TurnResult:
    """Run a StreamDecoder over an async line source until [DONE] or EOF."""
    decoder = StreamDecoder(on_text)
    closer = contextlib.aclosing(lines) if hasattr(lines, "aclose") else contextlib.nullcontext(lines)
    async with closer as source:
        async for line in source:
            if token is not None:
                token.raise_if_cancelled()
            if not decoder.feed_line(line):
                break
    if token is not None:
        token.raise_if_cancelled()
    return decoder.finish()
