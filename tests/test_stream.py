"""
Tests for the streaming completion decoder.

Verifies:
- Text and tool-argument fragments reassemble in order
- Malformed or non-object tool arguments are dropped
- Argument-less tools fall back to the block-start input
- Error frames, non-data lines and the [DONE] sentinel
- Cancellation between lines
"""
import asyncio

import pytest

from fakes import DONE, sse, text_frames, tool_call, tool_frames
from voice_agent.cancellation import CancellationToken
from voice_agent.errors import TransportError
from voice_agent.stream import StreamDecoder, ToolCallAccumulator, ToolInvocation, decode_stream


async def lines_of(*groups):
    for group in groups:
        for line in group:
            yield line


@pytest.mark.asyncio
async def test_text_and_split_tool_arguments():
    """Fragments across lines reassemble into text and one invocation."""
    result = await decode_stream(lines_of(
        text_frames("Hel", "lo"),
        tool_frames(1, "create_thought", '{"conten', 't":"x"}'),
        [DONE],
    ))

    assert result.final_text == "Hello"
    assert result.tool_invocations == [ToolInvocation("create_thought", {"content": "x"})]


@pytest.mark.asyncio
async def test_invocations_keep_stream_order():
    result = await decode_stream(lines_of(
        tool_call(0, "create_thought", {"content": "a"}),
        tool_call(1, "undo", {}),
        [DONE],
    ))

    assert [i.name for i in result.tool_invocations] == ["create_thought", "undo"]


@pytest.mark.asyncio
async def test_interleaved_blocks_complete_on_their_own_stop():
    lines = [
        sse({"type": "content_block_start", "index": 1, "content_block": {"type": "tool_use", "name": "first"}}),
        sse({"type": "content_block_start", "index": 2, "content_block": {"type": "tool_use", "name": "second"}}),
        sse({"type": "content_block_delta", "index": 2, "delta": {"type": "input_json_delta", "partial_json": '{"b": 2}'}}),
        sse({"type": "content_block_delta", "index": 1, "delta": {"type": "input_json_delta", "partial_json": '{"a": 1}'}}),
        sse({"type": "content_block_stop", "index": 2}),
        sse({"type": "content_block_stop", "index": 1}),
        DONE,
    ]
    result = await decode_stream(lines_of(lines))

    assert result.tool_invocations == [ToolInvocation("second", {"b": 2}), ToolInvocation("first", {"a": 1})]


@pytest.mark.asyncio
async def test_malformed_arguments_are_dropped():
    result = await decode_stream(lines_of(
        tool_frames(0, "create_thought", '{"content": '),
        tool_frames(1, "create_thought", "[1, 2]"),
        tool_call(2, "undo", {}),
        [DONE],
    ))

    assert result.tool_invocations == [ToolInvocation("undo", {})]


def test_empty_buffer_uses_initial_input():
    accumulator = ToolCallAccumulator("undo", {"preset": True})
    assert accumulator.close() == ToolInvocation("undo", {"preset": True})

    assert ToolCallAccumulator("undo", None).close() == ToolInvocation("undo", {})


@pytest.mark.asyncio
async def test_unterminated_block_is_dropped():
    result = await decode_stream(lines_of(
        tool_frames(0, "create_thought", '{"content": "x"}')[:-1],
        [DONE],
    ))

    assert result.tool_invocations == []


@pytest.mark.asyncio
async def test_error_frame_raises():
    with pytest.raises(TransportError, match="Overloaded"):
        await decode_stream(lines_of(
            text_frames("partial"),
            [sse({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}})],
        ))


def test_non_data_lines_are_skipped():
    decoder = StreamDecoder()

    assert decoder.feed_line("event: content_block_delta\n") is True
    assert decoder.feed_line(": keep-alive\n") is True
    assert decoder.feed_line("\n") is True
    assert decoder.feed_line("data: {not json\n") is True
    assert decoder.feed_line(text_frames("ok")[0]) is True
    assert decoder.feed_line(DONE) is False
    assert decoder.text == "ok"


@pytest.mark.asyncio
async def test_done_stops_reading():
    result = await decode_stream(lines_of(text_frames("kept"), [DONE], text_frames(" ignored")))

    assert result.final_text == "kept"


@pytest.mark.asyncio
async def test_text_callback_sees_growing_prefix():
    seen = []
    await decode_stream(lines_of(text_frames("a", "b", "c"), [DONE]), on_text=lambda text, done: seen.append((text, done)))

    assert seen == [("a", False), ("ab", False), ("abc", False), ("abc", True)]


@pytest.mark.asyncio
async def test_cancelled_token_stops_decoding():
    token = CancellationToken()
    token.cancel()

    with pytest.raises(asyncio.CancelledError):
        await decode_stream(lines_of(text_frames("x"), [DONE]), token=token)


@pytest.mark.asyncio
async def test_source_is_closed_on_early_exit():
    closed = []

    async def source():
        try:
            yield DONE
            yield text_frames("never")[0]
        finally:
            closed.append(True)

    await decode_stream(source())

    assert closed == [True]
