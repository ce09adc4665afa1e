"""
Tests for turn context rendering and the conversation log.
"""
import pytest

from voice_agent.context import (
    ConversationLog,
    ConversationMessage,
    build_messages,
    render_context_message,
    render_transcript,
)
from voice_agent.router import CommandMode, DictationMode
from voice_agent.workspace import Document


class TestConversationLog:
    def test_recent_returns_newest_in_order(self):
        log = ConversationLog()
        for i in range(5):
            log.add(ConversationMessage("user", f"m{i}"))

        assert [m.content for m in log.recent(2)] == ["m3", "m4"]
        assert log.recent(0) == []

    def test_bounded(self):
        log = ConversationLog(max_messages=3)
        for i in range(5):
            log.add(ConversationMessage("user", f"m{i}"))

        assert len(log) == 3
        assert [m.content for m in log.recent(10)] == ["m2", "m3", "m4"]

    def test_clear(self):
        log = ConversationLog()
        log.add(ConversationMessage("user", "x"))
        log.clear()

        assert len(log) == 0


class TestRenderContext:
    def test_empty_workspace(self, workspace):
        assert render_context_message(workspace, "hello") == "\n\nUser says: hello"

    @pytest.mark.asyncio
    async def test_documents_and_windows(self, workspace, open_document):
        await open_document("Buy milk and eggs", doc_id="3f2a9c1e-aaaa")
        workspace.create_document(Document(id="7b00d4aa-bbbb", content="closed idea", type="list"))

        rendered = render_context_message(workspace, "make it a list")

        assert rendered == (
            "Current thoughts in workspace:\n"
            "- [3f2a9c1e] (note): Buy milk and eggs...\n"
            "- [7b00d4aa] (list): closed idea...\n"
            "Open windows:\n"
            "- W1: Buy milk and eggs... [ACTIVE]\n"
            "\n"
            "User says: make it a list"
        )

    @pytest.mark.asyncio
    async def test_previews_are_truncated(self, workspace, open_document):
        await open_document("x" * 100)

        rendered = render_context_message(workspace, "hi")

        assert f"(note): {'x' * 50}..." in rendered
        assert f"- W1: {'x' * 40}... [ACTIVE]" in rendered

    @pytest.mark.asyncio
    async def test_empty_window_preview(self, workspace, open_document):
        await open_document("")

        assert "- W1: (empty)... [ACTIVE]" in render_context_message(workspace, "hi")

    @pytest.mark.asyncio
    async def test_dictation_mode_line(self, workspace, open_document):
        await open_document("notes", doc_id="3f2a9c1e-aaaa")
        workspace.create_document(Document(id="7b00d4aa-bbbb", content="closed"))

        assert "[Voice mode: DICTATE - targeting W1]" in render_context_message(
            workspace, "hi", DictationMode("3f2a9c1e-aaaa")
        )
        assert "[Voice mode: DICTATE - targeting [7b00d4aa]]" in render_context_message(
            workspace, "hi", DictationMode("7b00d4aa-bbbb")
        )
        assert "Voice mode" not in render_context_message(workspace, "hi", CommandMode())


def test_build_messages_appends_context(workspace):
    history = [ConversationMessage("user", "first"), ConversationMessage("assistant", "Created thought")]

    messages = build_messages(workspace, "second", history)

    assert messages[:2] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "Created thought"},
    ]
    assert messages[2]["role"] == "user"
    assert messages[2]["content"].endswith("User says: second")


def test_render_transcript():
    history = [ConversationMessage("user", "milk"), ConversationMessage("assistant", "ok")]

    assert render_transcript(history) == "user: milk\nassistant: ok"
