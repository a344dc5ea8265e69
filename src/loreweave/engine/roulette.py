"""Weighted random selection without replacement."""

from __future__ import annotations

import random
from collections.abc import Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class Roulette(Generic[T]):
    """A wheel of weighted items.

    `spin` lands on an item with probability proportional to its weight.
    Popped slots stay in place as `None` so indices remain stable.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()
        self._slots: list[tuple[float, T] | None] = []
        self.total_weight = 0.0
        self.count = 0

    def __len__(self) -> int:
        return self.count

    def push(self, weight: float, item: T) -> None:
        if weight <= 0:
            raise ValueError(f"Roulette weights must be positive, got {weight}")
        self._slots.append((weight, item))
        self.total_weight += weight
        self.count += 1

    def spin(self) -> int:
        """Index of the slot the ball lands on, or -1 if the wheel is empty."""
        if self.count == 0:
            return -1

        ball = self.rng.random() * self.total_weight
        cumulative = 0.0
        last = -1
        for index, slot in enumerate(self._slots):
            if slot is None:
                continue
            cumulative += slot[0]
            last = index
            if ball < cumulative:
                return index
        # Float drift on the running total can leave the ball past the end.
        return last

    def pick_and_pop(self) -> tuple[T, float] | None:
        index = self.spin()
        if index < 0:
            return None
        weight, item = self._slots[index]
        self._slots[index] = None
        self.count -= 1
        self.total_weight = sum(slot[0] for slot in self._slots if slot is not None)
        return item, weight

    def drain(self) -> Iterator[tuple[T, float]]:
        """Pop items until the wheel is empty, yielding them in draw order."""
        while True:
            winner = self.pick_and_pop()
            if winner is None:
                return
            yield winner
