"""
Spoken punctuation for dictation.

Words like "comma" or "new line" are replaced by their symbols anywhere in
a fragment (whole-word, case-insensitive). Content words that happen to
match ("trial period") are replaced too; dictation has no way to tell them
apart.
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Tuple

PUNCTUATION_MAP: Dict[str, str] = {
    "new paragraph": "\n\n",
    "new line": "\n",
    "full stop": ".",
    "period": ".",
    "comma": ",",
    "question mark": "?",
    "exclamation mark": "!",
    "exclamation point": "!",
    "colon": ":",
    "semicolon": ";",
}

# A separator space is not inserted after these trailing characters.
NO_SEPARATOR_AFTER = frozenset("\n.!?")


def _compile(table: Mapping[str, str]) -> List[Tuple[re.Pattern[str], str]]:
    compiled = []
    # Longest phrases first so "new paragraph" wins over any shorter overlap.
    for phrase in sorted(table, key=len, reverse=True):
        symbol = table[phrase]
        words = r"\s+".join(re.escape(w) for w in phrase.split())
        if symbol.strip():
            # Inline punctuation swallows the space in front of it.
            pattern = rf"[ \t]*\b{words}\b"
        else:
            # Line breaks swallow spaces on both sides.
            pattern = rf"[ \t]*\b{words}\b[ \t]*"
        compiled.append((re.compile(pattern, re.IGNORECASE), symbol))
    return compiled


class PunctuationMapper:
    """Applies a word→symbol table to dictated text."""

    def __init__(self, table: Mapping[str, str] = PUNCTUATION_MAP):
        self._rules = _compile(table)

    def apply(self, text: str) -> str:
        result = text.strip()
        for pattern, symbol in self._rules:
            result = pattern.sub(lambda _m, s=symbol: s, result)
        return result


def append_with_separator(existing: str, addition: str) -> str:
    """
    Append dictated text to existing content.

    A single space goes in between unless the content is empty or already
    ends in a newline or sentence-ending punctuation.
    """
    if not addition:
        return existing
    if not existing or existing[-1] in NO_SEPARATOR_AFTER:
        return existing + addition
    return f"{existing} {addition}"
