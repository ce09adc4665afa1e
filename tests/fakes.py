"""
Test fakes.

No test touches the network: FakeTransport replays scripted SSE lines and
canned transform responses.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Union

from voice_agent.errors import TransportError


def sse(event: Dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n"


def text_frames(*chunks: str, index: int = 0) -> List[str]:
    return [
        sse({"type": "content_block_delta", "index": index, "delta": {"type": "text_delta", "text": chunk}})
        for chunk in chunks
    ]


def tool_frames(index: int, name: str, *parts: str, initial_input: Optional[dict] = None) -> List[str]:
    block = {"type": "tool_use", "id": f"toolu_{index}", "name": name, "input": initial_input or {}}
    lines = [sse({"type": "content_block_start", "index": index, "content_block": block})]
    for part in parts:
        lines.append(sse({
            "type": "content_block_delta",
            "index": index,
            "delta": {"type": "input_json_delta", "partial_json": part},
        }))
    lines.append(sse({"type": "content_block_stop", "index": index}))
    return lines


def tool_call(index: int, name: str, args: Dict[str, Any]) -> List[str]:
    return tool_frames(index, name, json.dumps(args))


DONE = "data: [DONE]\n"

ScriptItem = Union[str, asyncio.Event, BaseException]


class FakeTransport:
    """
    Scripted stand-in for CompletionTransport.

    Each call to stream_lines consumes one script: a list of SSE lines,
    asyncio.Events (the stream blocks until they are set) and exceptions
    (raised at that point in the stream).
    """

    def __init__(self, scripts: Optional[List[List[ScriptItem]]] = None, completions: Optional[List[str]] = None):
        self.scripts = list(scripts or [])
        self.completions = list(completions or [])
        self.stream_payloads: List[dict] = []
        self.complete_payloads: List[dict] = []
        self.closed = False

    async def stream_lines(self, payload: dict):
        self.stream_payloads.append(payload)
        script = self.scripts.pop(0) if self.scripts else [DONE]
        for item in script:
            if isinstance(item, asyncio.Event):
                await item.wait()
            elif isinstance(item, BaseException):
                raise item
            else:
                yield item

    async def complete(self, payload: dict) -> dict:
        self.complete_payloads.append(payload)
        if not self.completions:
            raise TransportError("API error: 500", status=500)
        return {"content": [{"type": "text", "text": self.completions.pop(0)}]}

    async def aclose(self) -> None:
        self.closed = True
