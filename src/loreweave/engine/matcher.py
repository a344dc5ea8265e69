"""Keyword matching for entries.

Every keyword compiles to a case-insensitive pattern anchored at the start of
a word, so `key` matches "key" and "keystone" but not "smokey". Exact
keywords must also end at a word boundary. The same history text is tested
against many entries, so occurrence counts are memoized per run in a
`MatchCounter` shared by all matchers.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING, Literal

from loreweave.engine.entry import KeywordDef

if TYPE_CHECKING:
    from loreweave.engine.entry import Entry

Mode = Literal["included", "excluded"]


def keyword_pattern(keyword: KeywordDef) -> re.Pattern[str]:
    pattern = rf"""(?:[\s'"]|^){re.escape(keyword.value.strip())}"""
    if keyword.exact:
        pattern += r"(?!\w)"
    return re.compile(pattern, re.IGNORECASE)


class MatchCounter:
    """Memoized occurrence counter, keyed by pattern and text."""

    def __init__(self) -> None:
        self._store: dict[tuple[str, int], dict[str, int]] = {}

    def __call__(self, text: str, pattern: re.Pattern[str]) -> int:
        bin_ = self._store.setdefault((pattern.pattern, pattern.flags), {})
        count = bin_.get(text)
        if count is None:
            count = len(pattern.findall(text))
            bin_[text] = count
        return count


def _as_texts(text_or_texts: str | Iterable[str] | None) -> list[str]:
    if not text_or_texts:
        return []
    if isinstance(text_or_texts, str):
        return [text_or_texts]
    return [t for t in text_or_texts if t]


class Matcher:
    """Per-turn wrapper pairing an entry with its compiled keyword tests."""

    def __init__(self, entry: Entry, counter: MatchCounter | None = None) -> None:
        self.entry = entry
        self.counter = counter or MatchCounter()
        self.include = [keyword_pattern(kw) for kw in entry.include]
        self.exclude = [keyword_pattern(kw) for kw in entry.exclude if kw.value]

    def __repr__(self) -> str:
        return f"Matcher({self.entry.describe()})"

    @property
    def entry_id(self) -> str:
        return self.entry.entry_id

    @property
    def type(self) -> str:
        return self.entry.type

    @property
    def text(self) -> str:
        return self.entry.text

    def _patterns(self, mode: Mode) -> list[re.Pattern[str]]:
        return self.include if mode == "included" else self.exclude

    def occurrences_in(self, text_or_texts: str | Iterable[str] | None, mode: Mode = "included") -> int:
        """Total keyword hits across the texts."""
        patterns = self._patterns(mode)
        if not patterns:
            return 0
        return sum(
            self.counter(text, pattern)
            for text in _as_texts(text_or_texts)
            for pattern in patterns
        )

    def unique_occurrences_in(
        self, text_or_texts: str | Iterable[str] | None, mode: Mode = "included"
    ) -> int:
        """Number of (text, keyword) pairs with at least one hit."""
        patterns = self._patterns(mode)
        if not patterns:
            return 0
        return sum(
            1
            for text in _as_texts(text_or_texts)
            for pattern in patterns
            if self.counter(text, pattern) > 0
        )

    def has_included_words(self, text_or_texts: str | Iterable[str] | None) -> bool:
        texts = _as_texts(text_or_texts)
        if not texts:
            return False
        # No inclusive keywords matches by default.
        if not self.include:
            return True
        return any(self.counter(t, p) > 0 for t in texts for p in self.include)

    def has_excluded_words(self, text_or_texts: str | Iterable[str] | None) -> bool:
        texts = _as_texts(text_or_texts)
        if not texts or not self.exclude:
            return False
        return any(self.counter(t, p) > 0 for t in texts for p in self.exclude)
