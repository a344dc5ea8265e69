"""Turn-scoped working state, threaded through every pipeline phase."""

from __future__ import annotations

import random
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from loreweave.engine.matcher import MatchCounter
from loreweave.engine.relator import UsedKeysMap
from loreweave.engine.sources import (
    AUTHORS_NOTE,
    FRONT_MEMORY,
    IMPLICIT,
    IMPLICIT_REF,
    PLAYER_MEMORY,
    Source,
)

if TYPE_CHECKING:
    from loreweave.engine.entry import Entry
    from loreweave.engine.matcher import Matcher
    from loreweave.engine.registry import EntryType, TypeRegistry


@dataclass
class TurnContext:
    """Everything one turn owns. Nothing here outlives the turn."""

    registry: TypeRegistry
    rng: random.Random = field(default_factory=random.Random)
    history_window: int = 20
    score_cap: float = 1000.0
    counter: MatchCounter = field(default_factory=MatchCounter)

    entries: dict[str, Entry] = field(default_factory=dict)
    issues: dict[str, list[str]] = field(default_factory=dict)
    validation_failed: bool = False
    matchers: list[Matcher] = field(default_factory=list)

    # Oldest first; the last item is the current input (offset 0).
    history: list[str] = field(default_factory=list)
    player_memory: str = ""
    authors_note_open: bool = True
    front_memory_open: bool = True

    # Dicts are used as insertion-ordered sets.
    associations: dict[Source, dict[str, None]] = field(default_factory=dict)
    scores: dict[Source, dict[str, float]] = field(default_factory=dict)
    used_keys: UsedKeysMap = field(default_factory=dict)
    ref_subjects: dict[str, Entry] = field(default_factory=dict)
    winners: list[tuple[Source, str]] = field(default_factory=list)

    # ── Entries ─────────────────────────────────────────────

    def entry_type(self, entry: Entry) -> EntryType:
        return self.registry[entry.type]

    def add_issue(self, label: str, issue: str) -> None:
        self.issues.setdefault(label, []).append(issue)

    # ── History ─────────────────────────────────────────────

    @property
    def max_offset(self) -> int:
        return len(self.history) - 1

    def history_text(self, offset: int) -> str | None:
        if offset < 0 or offset > self.max_offset:
            return None
        return self.history[self.max_offset - offset]

    # ── Associations ────────────────────────────────────────

    def associate(self, source: Source, entry_id: str) -> None:
        self.associations.setdefault(source, {})[entry_id] = None

    def dissociate(self, source: Source, entry_id: str) -> None:
        self.associations.get(source, {}).pop(entry_id, None)

    def is_associated(self, source: Source, entry_id: str) -> bool:
        return entry_id in self.associations.get(source, {})

    def associated_ids(self, source: Source) -> list[str]:
        return list(self.associations.get(source, {}))

    def associated_entries(self, source: Source) -> Iterator[Entry]:
        for entry_id in self.associated_ids(source):
            yield self.entries[entry_id]

    # ── Phase orders ────────────────────────────────────────

    def history_offsets(self, newest_first: bool = False) -> list[int]:
        offsets = list(range(self.max_offset + 1))
        return offsets if newest_first else offsets[::-1]

    def association_order(self) -> list[Source]:
        """Named slots first, then implicit refs, then history oldest to newest."""
        return [
            IMPLICIT,
            PLAYER_MEMORY,
            AUTHORS_NOTE,
            FRONT_MEMORY,
            IMPLICIT_REF,
            *self.history_offsets(),
        ]

    def pre_rule_order(self) -> list[Source]:
        return [
            IMPLICIT,
            PLAYER_MEMORY,
            AUTHORS_NOTE,
            FRONT_MEMORY,
            IMPLICIT_REF,
            *self.history_offsets(newest_first=True),
        ]

    def finalize_order(self) -> list[Source]:
        return list(reversed(self.association_order()))
