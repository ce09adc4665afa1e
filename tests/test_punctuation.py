"""
Tests for spoken punctuation and the dictation separator rule.
"""
import pytest

from voice_agent.punctuation import PunctuationMapper, append_with_separator


@pytest.fixture
def mapper():
    return PunctuationMapper()


class TestPunctuationMapper:
    def test_inline_symbols_absorb_preceding_space(self, mapper):
        assert mapper.apply("hello comma world period") == "hello, world."

    def test_line_break_absorbs_surrounding_spaces(self, mapper):
        assert mapper.apply("new line next point comma") == "\nnext point,"

    def test_new_paragraph_beats_new_line(self, mapper):
        assert mapper.apply("first new paragraph second") == "first\n\nsecond"

    def test_case_insensitive(self, mapper):
        assert mapper.apply("Really Question Mark") == "Really?"

    def test_multi_word_symbols(self, mapper):
        assert mapper.apply("wow exclamation point") == "wow!"
        assert mapper.apply("wow exclamation mark") == "wow!"
        assert mapper.apply("done full stop") == "done."

    def test_whole_words_only(self, mapper):
        """Words that merely contain a phrase are left alone."""
        assert mapper.apply("periodic commander") == "periodic commander"
        assert mapper.apply("list semicolon item") == "list; item"

    def test_content_words_are_replaced_too(self, mapper):
        """Dictation cannot tell a spoken symbol from a content word."""
        assert mapper.apply("the trial period ended") == "the trial. ended"

    def test_strips_fragment(self, mapper):
        assert mapper.apply("  spaced out  ") == "spaced out"

    def test_custom_table(self):
        mapper = PunctuationMapper({"dash": "-"})
        assert mapper.apply("a dash b comma") == "a- b comma"


class TestAppendWithSeparator:
    def test_space_between_words(self):
        assert append_with_separator("Hello world", "\nnext point,") == "Hello world \nnext point,"

    def test_no_space_into_empty_document(self):
        assert append_with_separator("", "First words") == "First words"

    @pytest.mark.parametrize("ending", ["\n", ".", "!", "?"])
    def test_no_space_after_sentence_end(self, ending):
        assert append_with_separator(f"Done{ending}", "Next") == f"Done{ending}Next"

    def test_space_after_comma(self):
        assert append_with_separator("One,", "two") == "One, two"

    def test_empty_addition_is_noop(self):
        assert append_with_separator("Existing", "") == "Existing"
