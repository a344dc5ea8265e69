"""Turn the cached winners into the packed output handed to the renderer."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loreweave.engine.packing import entry_selector
from loreweave.engine.sorting import SortableEntry, entry_sorter

if TYPE_CHECKING:
    from loreweave.cache import CachedWinner, CacheRecord
    from loreweave.engine.entry import Entry

logger = logging.getLogger(__name__)

PLAYER_MEMORY_SCORE = 100


@dataclass
class PackedOutput:
    """Ordered context lines plus the two single-string slots."""

    context: list[str] = field(default_factory=list)
    front_memory: str | None = None
    authors_note: str | None = None

    @property
    def context_text(self) -> str:
        return "\n".join(self.context)


def to_sortable(winner: CachedWinner, entry: Entry) -> SortableEntry:
    return SortableEntry(
        text=entry.text,
        keys=frozenset(entry.keys),
        relations=tuple(sorted(entry.relator.keys_for_match)),
        priority=winner.priority,
        score=winner.score,
        payload=winner,
    )


def player_memory_lines(player_memory: str) -> Iterator[SortableEntry]:
    """Each line of the player memory, except `#` comments, in line order."""
    for index, line in enumerate(player_memory.split("\n")):
        text = line.strip()
        if not text or text.startswith("#"):
            continue
        yield SortableEntry(
            text=text,
            priority=-(1000 + index),
            score=PLAYER_MEMORY_SCORE,
        )


def pack_context(
    record: CacheRecord,
    entries: Mapping[str, Entry],
    player_memory: str = "",
    summary: str = "",
    budget: int = 1001,
) -> list[str]:
    """Sort and pack the context-memory and history winners into `budget` characters."""
    winners = list(record.context_memory)
    winners.extend(record.history[offset] for offset in sorted(record.history))

    sortables = [to_sortable(w, entries[w.entry_id]) for w in winners if w.entry_id in entries]
    sortables.extend(player_memory_lines(player_memory))

    if summary and len(summary) > budget:
        logger.warning("Dropping a summary of %d characters; the budget is %d", len(summary), budget)
        summary = ""

    packed = entry_selector(
        entry_sorter(sortables),
        budget - len(summary),
        length_getter=lambda e: len(e.text) + 1,
    )
    lines = [e.text.strip() for e in packed]
    lines.append(summary)
    return [line for line in lines if line]


def _slot_text(winner: CachedWinner | None, entries: Mapping[str, Entry]) -> str | None:
    if winner is None or winner.entry_id not in entries:
        return None
    return entries[winner.entry_id].text.strip() or None


def build_output(
    record: CacheRecord,
    entries: Mapping[str, Entry],
    player_memory: str = "",
    summary: str = "",
    budget: int = 1001,
    authors_note: str = "",
    front_memory: str = "",
) -> PackedOutput:
    """Build the output; slots already filled by the caller are left as they are."""
    context = pack_context(record, entries, player_memory, summary, budget)
    output = PackedOutput(
        context=context,
        front_memory=front_memory or _slot_text(record.front_memory, entries),
        authors_note=authors_note or _slot_text(record.authors_note, entries),
    )
    logger.debug("Packed %d context lines (%d chars)", len(context), len(output.context_text))
    return output
