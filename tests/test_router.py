"""
Tests for transcript routing.

Verifies:
- Command-mode buffering of final fragments
- Dictation appends with punctuation and separators
- Exit phrase detection
- Missing dictation targets
"""
import pytest

from voice_agent.router import (
    CommandMode,
    DictationMode,
    RouteOutcome,
    TranscriptFragment,
    TranscriptRouter,
)
from voice_agent.workspace import Document


@pytest.fixture
def router(workspace):
    return TranscriptRouter(workspace)


def final(text):
    return TranscriptFragment(text, is_final=True)


class TestCommandMode:
    def test_pending_buffer_is_space_join_of_finals(self, router):
        """Final fragments accumulate; interim ones do not."""
        fragments = [
            TranscriptFragment("make a"),
            final("make a list"),
            TranscriptFragment("of gro"),
            final("of groceries"),
            final("please"),
        ]
        outcomes = [router.route(f, CommandMode()) for f in fragments]

        assert router.pending.text == "make a list of groceries please"
        assert outcomes == [
            RouteOutcome.INTERIM,
            RouteOutcome.BUFFERED,
            RouteOutcome.INTERIM,
            RouteOutcome.BUFFERED,
            RouteOutcome.BUFFERED,
        ]

    def test_exit_phrase_is_buffered_in_command_mode(self, router):
        """Exit phrases only mean something during dictation."""
        assert router.route(final("command mode"), CommandMode()) is RouteOutcome.BUFFERED
        assert router.pending.text == "command mode"

    def test_clear_pending(self, router):
        router.route(final("something"), CommandMode())
        router.clear_pending()

        assert router.pending.text == ""
        assert not router.pending

    @pytest.mark.asyncio
    async def test_send_pending_submits_and_clears(self, workspace):
        sent = []

        async def submit(text):
            sent.append(text)

        router = TranscriptRouter(workspace, submit=submit)
        router.route(final("close"), CommandMode())
        router.route(final("window two"), CommandMode())

        assert await router.send_pending() == "close window two"
        assert sent == ["close window two"]
        assert router.pending.text == ""

    @pytest.mark.asyncio
    async def test_send_pending_with_empty_buffer(self, workspace):
        sent = []

        async def submit(text):
            sent.append(text)

        router = TranscriptRouter(workspace, submit=submit)

        assert await router.send_pending() is None
        assert sent == []


class TestDictationMode:
    def test_append_with_punctuation(self, router, workspace):
        """Dictated text is punctuated and appended after a space."""
        workspace.create_document(Document(id="d1", content="Hello world"))

        outcome = router.route(final("new line next point comma"), DictationMode("d1"))

        assert outcome is RouteOutcome.DICTATED
        assert workspace.get_document("d1").content == "Hello world \nnext point,"

    def test_appends_into_empty_document_without_space(self, router, workspace):
        workspace.create_document(Document(id="d1", content=""))

        router.route(final("first words"), DictationMode("d1"))

        assert workspace.get_document("d1").content == "first words"

    def test_interim_fragments_do_not_append(self, router, workspace):
        workspace.create_document(Document(id="d1", content="Start."))

        assert router.route(TranscriptFragment("partial"), DictationMode("d1")) is RouteOutcome.INTERIM
        assert workspace.get_document("d1").content == "Start."

    @pytest.mark.parametrize("text", ["stop dictating", "OK Stop Dictation now", "command mode", "hey Koe"])
    def test_exit_phrases(self, router, workspace, text):
        """Exit phrases match as case-insensitive substrings and are discarded."""
        workspace.create_document(Document(id="d1", content="Keep"))

        assert router.route(final(text), DictationMode("d1")) is RouteOutcome.EXIT_DICTATION
        assert workspace.get_document("d1").content == "Keep"

    def test_exit_phrase_in_interim_fragment(self, router, workspace):
        workspace.create_document(Document(id="d1", content="Keep"))

        assert router.route(TranscriptFragment("stop dictating"), DictationMode("d1")) is RouteOutcome.EXIT_DICTATION

    def test_missing_target_drops_fragment(self, router):
        assert router.route(final("lost words"), DictationMode("gone")) is RouteOutcome.TARGET_MISSING

    def test_dictation_does_not_touch_pending_buffer(self, router, workspace):
        workspace.create_document(Document(id="d1", content=""))

        router.route(final("words"), DictationMode("d1"))

        assert router.pending.text == ""
