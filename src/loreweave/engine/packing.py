"""Budgeted packing of sorted entries."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import TypeVar

from loreweave.engine.sorting import SortableEntry

T = TypeVar("T")
E = TypeVar("E", bound=SortableEntry)


def default_length(entry: SortableEntry) -> int:
    """Text length plus the newline that joins it to the next line."""
    return len(entry.text) + 1 if entry.text else 0


def limit_text(
    items: Iterable[T],
    max_length: int,
    length_getter: Callable[[T], int],
    permissive: bool = False,
) -> Iterator[T]:
    """Yield items while their accumulated length stays within `max_length`.

    Items with no length are dropped. A strict limit stops at the first item
    that would overflow; a permissive one skips it and keeps trying the rest.
    """
    total = 0
    for item in items:
        length = length_getter(item)
        if length <= 0:
            continue
        if total + length > max_length:
            if permissive:
                continue
            return
        total += length
        yield item


def entry_selector(
    sorted_entries: Iterable[E],
    text_limit: int,
    length_getter: Callable[[E], int] | None = None,
    permissive: bool = True,
) -> list[E]:
    """Admit the highest-scoring entries that fit, then restore their `order`."""
    by_score = sorted(sorted_entries, key=lambda e: e.score, reverse=True)
    admitted = limit_text(
        by_score,
        text_limit,
        length_getter or default_length,
        permissive=permissive,
    )
    return sorted(admitted, key=lambda e: e.order)
