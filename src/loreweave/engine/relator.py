"""Relation constraints and the history-indexed key-usage ledger.

Entries may reference the keys of other entries. While the history is being
associated, every entry that matches an offset records its keys in a
`UsedKeysMap`; entries evaluated later check their relations against the keys
recorded around the offset they are trying to match.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loreweave.engine.entry import Entry

ALL_OF = "all_of"
AT_LEAST_ONE = "at_least_one"
IMMEDIATE = "immediate"
NEGATED = "negated"

RELATION_KINDS = (ALL_OF, AT_LEAST_ONE, IMMEDIATE, NEGATED)

# history offset -> keys recorded as used at that offset
UsedKeysMap = dict[int, set[str]]


@dataclass(frozen=True)
class RelationDef:
    """A reference to another entry's key."""

    kind: str
    key: str

    def __post_init__(self) -> None:
        if self.kind not in RELATION_KINDS:
            raise ValueError(f"Unknown relation type: {self.kind}")


def iter_used_keys(used_keys: UsedKeysMap, start: int, end: int | None = None) -> Iterator[str]:
    """Yield the keys recorded from offset `start` through `end`, inclusive."""
    end = start if end is None else end
    for offset in range(start, end + 1):
        yield from used_keys.get(offset, ())


def record_keys(used_keys: UsedKeysMap, offset: int, keys: Iterable[str]) -> None:
    keys = list(keys)
    if not keys:
        return
    used_keys.setdefault(offset, set()).update(keys)


@dataclass(frozen=True)
class Relator:
    """An entry's relations partitioned by kind."""

    all_of: frozenset[str] = frozenset()
    at_least_one: frozenset[str] = frozenset()
    immediate: frozenset[str] = frozenset()
    negated: frozenset[str] = frozenset()

    @classmethod
    def from_relations(cls, relations: Iterable[RelationDef]) -> Relator:
        buckets: dict[str, set[str]] = {kind: set() for kind in RELATION_KINDS}
        for relation in relations:
            buckets[relation.kind].add(relation.key)
        return cls(
            all_of=frozenset(buckets[ALL_OF]),
            at_least_one=frozenset(buckets[AT_LEAST_ONE]),
            immediate=frozenset(buckets[IMMEDIATE]),
            negated=frozenset(buckets[NEGATED]),
        )

    @property
    def keys_for_match(self) -> frozenset[str]:
        """Referenced keys that count toward a positive match."""
        return self.all_of | self.at_least_one | self.immediate

    @property
    def keys_of_interest(self) -> frozenset[str]:
        return self.keys_for_match | self.negated

    def is_interested_in(self, keys: Iterable[str]) -> bool:
        """Whether any of `keys` is referenced, negated references included."""
        interest = self.keys_of_interest
        return any(key in interest for key in keys)

    def check(self, used_keys: UsedKeysMap, start: int, end: int | None = None) -> int | None:
        """Check the relations against keys used from `start` through `end`.

        Returns `None` when a constraint fails. Otherwise returns the number of
        referenced keys that were found; `0` is a success for an entry with
        nothing positive to match.

        Immediate relations only look at the keys recorded at `start`.
        """
        if not self.keys_of_interest:
            return 0

        window = set(iter_used_keys(used_keys, start, end))
        if self.negated & window:
            return None

        match_count = 0
        if self.at_least_one:
            found = len(self.at_least_one & window)
            if found == 0:
                return None
            match_count += found

        if not self.all_of <= window:
            return None
        match_count += len(self.all_of)

        if self.immediate:
            if not self.immediate <= used_keys.get(start, set()):
                return None
            match_count += len(self.immediate)

        return match_count


NIL_RELATOR = Relator()


def set_relations(entry: Entry, relations: Iterable[RelationDef]) -> Relator:
    """Replace an entry's relations and rebuild its relator from them."""
    entry.relations = tuple(relations)
    entry.relator = Relator.from_relations(entry.relations)
    return entry.relator
