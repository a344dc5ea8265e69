"""Association sources and the per-pair parameters handed to associators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from loreweave.engine.entry import Entry

IMPLICIT = "implicit"
IMPLICIT_REF = "implicit_ref"
PLAYER_MEMORY = "player_memory"
AUTHORS_NOTE = "authors_note"
FRONT_MEMORY = "front_memory"
HISTORY = "history"

NAMED_SOURCES = (IMPLICIT, PLAYER_MEMORY, AUTHORS_NOTE, FRONT_MEMORY, IMPLICIT_REF)
TARGET_SOURCES = frozenset({*NAMED_SOURCES, HISTORY})

# A named slot or a history offset (0 = current input).
Source = Union[str, int]


def is_history(source: Source) -> bool:
    return isinstance(source, int) and not isinstance(source, bool)


def capability_for(source: Source) -> str:
    """Map a source to the capability name an entry must declare to target it."""
    return HISTORY if is_history(source) else str(source)


def source_label(source: Source) -> str:
    if is_history(source):
        return f"History {source}"
    return {
        IMPLICIT: "Implicit",
        IMPLICIT_REF: "Implicit Ref",
        PLAYER_MEMORY: "Player Memory",
        AUTHORS_NOTE: "Author's Note",
        FRONT_MEMORY: "Front Memory",
    }.get(str(source), str(source))


@dataclass
class AssociationParams:
    """What an associator sees for one (entry, source) pair.

    `text` is the searchable text for the source, if it has any. For
    `implicit_ref`, `ref` is the implicitly associated entry being referenced.
    History offsets also carry the shared used-keys ledger and the edge of the
    lookback window.
    """

    source: Source
    text: str | None = None
    ref: Entry | None = None
    used_keys: dict[int, set[str]] | None = field(default=None, repr=False)
    window_end: int = 0

    @property
    def is_history(self) -> bool:
        return is_history(self.source)
