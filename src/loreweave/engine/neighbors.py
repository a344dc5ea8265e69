"""Neighbor views handed to pre-rules and post-rules.

A neighbor is another entry associated with some source. History offsets
older than the current one are "before" it and newer offsets are "after" it.
The entry the view was built for is never yielded.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, NamedTuple

from loreweave.engine.sources import Source, is_history

if TYPE_CHECKING:
    from loreweave.engine.context import TurnContext
    from loreweave.engine.entry import Entry


class Neighbor(NamedTuple):
    entry: Entry
    source: Source


class ScoredNeighbor(NamedTuple):
    entry: Entry
    source: Source
    score: float


class PreRuleNeighbors:
    def __init__(self, ctx: TurnContext, entry_id: str, source: Source) -> None:
        self._ctx = ctx
        self.entry_id = entry_id
        self.source = source

    def _item(self, entry: Entry, source: Source):
        return Neighbor(entry, source)

    def get_for(self, source: Source) -> Iterator:
        """Entries associated with `source`."""
        for entry in self._ctx.associated_entries(source):
            if entry.entry_id != self.entry_id:
                yield self._item(entry, source)

    def current(self) -> Iterator:
        return self.get_for(self.source)

    def before(self) -> Iterator:
        """Entries associated with older history offsets, nearest first."""
        if not is_history(self.source):
            return
        for offset in range(self.source + 1, self._ctx.max_offset + 1):
            yield from self.get_for(offset)

    def after(self) -> Iterator:
        """Entries associated with newer history offsets, nearest first."""
        if not is_history(self.source):
            return
        for offset in range(self.source - 1, -1, -1):
            yield from self.get_for(offset)


class PostRuleNeighbors(PreRuleNeighbors):
    """Pre-rule views carrying scores, plus the winners picked so far."""

    def _item(self, entry: Entry, source: Source):
        score = self._ctx.scores.get(source, {}).get(entry.entry_id, 0)
        return ScoredNeighbor(entry, source, score)

    def selected(self) -> Iterator[ScoredNeighbor]:
        for source, entry_id in self._ctx.winners:
            yield self._item(self._ctx.entries[entry_id], source)
