"""Natural ordering of the winners that share the context-memory output.

Entries are ordered by priority, then by relational descent, then by score.
A grouping pass then pulls unprioritized entries toward the entries they are
related to, so related text ends up next to each other.

Priority inheritance: an unprioritized entry that shares a key with
prioritized entries, or whose only present relation points at such a key,
sorts as if it had the lowest priority among them. When an entry's own
priority equals the one it competes with through a shared key, the entry
with an explicit priority goes first.
"""

from __future__ import annotations

import functools
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class SortableEntry:
    text: str
    keys: frozenset[str] = frozenset()
    relations: tuple[str, ...] = ()
    priority: float | None = None
    score: float = 0
    order: int = -1
    payload: Any = field(default=None, compare=False)


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


class SortingHelpers:
    """Queries about the relationships within one batch of entries."""

    def __init__(self, entries: list[SortableEntry]) -> None:
        self.entries = entries
        self.known_keys: set[str] = set()
        self.key_to_priority: dict[str, float] = {}
        self.key_to_entries: dict[str, list[int]] = {}

        for index, entry in enumerate(entries):
            for key in entry.keys:
                self.known_keys.add(key)
                self.key_to_entries.setdefault(key, []).append(index)
                if entry.priority is None:
                    continue
                current = self.key_to_priority.get(key)
                if current is None or entry.priority < current:
                    self.key_to_priority[key] = entry.priority

        self._families: dict[int, list[int]] = {}
        self._root_keys: dict[int, frozenset[str]] = {}

    def included_relations(self, entry: SortableEntry) -> list[str]:
        """Relations that point at a key some entry in this batch has."""
        return [key for key in entry.relations if key in self.known_keys]

    def family(self, index: int) -> list[int]:
        """Indices reachable from an entry through its keys and relations."""
        cached = self._families.get(index)
        if cached is not None:
            return cached
        visited: list[int] = []
        seen: set[int] = set()
        stack = [index]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            visited.append(current)
            entry = self.entries[current]
            for key in sorted(entry.keys | set(entry.relations), reverse=True):
                for other in reversed(self.key_to_entries.get(key, ())):
                    if other not in seen:
                        stack.append(other)
        self._families[index] = visited
        return visited

    def root_keys(self, index: int) -> frozenset[str]:
        """Keys that end the relation chains starting at an entry."""
        cached = self._root_keys.get(index)
        if cached is not None:
            return cached
        entry = self.entries[index]
        roots: set[str] = set()
        for other_index in self.family(index):
            other = self.entries[other_index]
            if not other.keys:
                continue
            included = self.included_relations(other)
            # Relatives may have been culled during selection, so a chain that
            # points outside the batch ends here.
            if not other.relations or len(included) < len(other.relations):
                roots.update(other.keys)
                continue
            onward = [k for k in included if k not in entry.keys and k not in other.keys]
            if not onward:
                roots.update(other.keys)
        self._root_keys[index] = frozenset(roots)
        return self._root_keys[index]

    def priority_key(self, entry: SortableEntry) -> str | None:
        inherited = sorted(
            (k for k in entry.keys if k in self.key_to_priority),
            key=lambda k: (self.key_to_priority[k], k),
        )
        if inherited:
            return inherited[0]
        included = self.included_relations(entry)
        if len(included) == 1 and included[0] in self.key_to_priority:
            return included[0]
        return None

    def priority_for(self, entry: SortableEntry, key: str | None) -> float:
        if entry.priority is not None:
            return entry.priority
        if key is None:
            return 0
        return self.key_to_priority.get(key, 0)

    def is_descendant(self, index: int, other_index: int) -> bool:
        """Whether an entry reaches another through relations alone."""
        if self.entries[index].keys & self.entries[other_index].keys:
            return False
        return other_index in self.family(index)


def build_sorter(helpers: SortingHelpers):
    """Comparator over entry indices."""
    entries = helpers.entries

    def by_priority(a: SortableEntry, b: SortableEntry) -> int:
        a_key = helpers.priority_key(a)
        b_key = helpers.priority_key(b)
        if a_key is not None and a_key == b_key:
            if a.priority is not None and b.priority is None:
                return -1
            if b.priority is not None and a.priority is None:
                return 1
        return _sign(helpers.priority_for(b, b_key) - helpers.priority_for(a, a_key))

    def by_relations(ia: int, ib: int) -> int:
        if helpers.is_descendant(ia, ib):
            return 1
        if helpers.is_descendant(ib, ia):
            return -1
        a, b = entries[ia], entries[ib]
        if a.relations and b.relations:
            return _sign(len(a.relations) - len(b.relations))
        return 0

    def by_score(a: SortableEntry, b: SortableEntry) -> int:
        # Alternates for the same key stay together, weakest first.
        if a.keys & b.keys:
            return _sign(a.score - b.score)
        return _sign(b.score - a.score)

    def sorter(ia: int, ib: int) -> int:
        a, b = entries[ia], entries[ib]
        return by_priority(a, b) or by_relations(ia, ib) or by_score(a, b)

    return sorter


def group_entries(ordered: list[int], helpers: SortingHelpers) -> list[int]:
    """Cluster unprioritized entries toward the first entry holding their root keys.

    Prioritized entries stay where they are and split the list into runs;
    only entries within a run move.
    """
    first_position: dict[str, int] = {}
    position: dict[int, int] = {}
    for pos, index in enumerate(ordered):
        position[index] = pos
        for key in helpers.entries[index].keys:
            first_position.setdefault(key, pos)

    def cluster_position(index: int) -> int:
        found = [first_position[k] for k in helpers.root_keys(index) if k in first_position]
        return max(found) if found else position[index]

    result: list[int] = []
    run: list[int] = []
    for index in ordered:
        if helpers.entries[index].priority is None:
            run.append(index)
            continue
        result.extend(sorted(run, key=cluster_position))
        run = []
        result.append(index)
    result.extend(sorted(run, key=cluster_position))
    return result


def entry_sorter(entries: Iterable[SortableEntry]) -> list[SortableEntry]:
    """Order entries naturally, stamping each with its final `order`."""
    batch = list(entries)
    helpers = SortingHelpers(batch)
    ordered = sorted(range(len(batch)), key=functools.cmp_to_key(build_sorter(helpers)))
    grouped = group_entries(ordered, helpers)
    return [replace(batch[index], order=order) for order, index in enumerate(grouped)]
