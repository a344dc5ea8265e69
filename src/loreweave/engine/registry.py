"""Entry-type registry.

Each entry type is a record of optional hooks. Any hook left unset falls back
to the default behaviour:

- validator(entry) -> list of issues          (default: no issues)
- modifier(entry, snapshots) -> None          (default: no change)
- associator(matcher, params) -> bool | None  (default: keyword/relation match;
  returning None also defers to the default)
- pre_rules(matcher, source, neighbors) -> bool         (default: keep)
- valuator(matcher, source, subject) -> number          (default: 1)
- post_rules(matcher, source, score, neighbors) -> bool (default: accept)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from loreweave.engine.association import default_associator

if TYPE_CHECKING:
    from loreweave.engine.entry import Entry, EntrySnapshot
    from loreweave.engine.matcher import Matcher
    from loreweave.engine.neighbors import PostRuleNeighbors, PreRuleNeighbors
    from loreweave.engine.sources import AssociationParams, Source

logger = logging.getLogger(__name__)

ValidatorFn = Callable[["Entry"], list[str]]
ModifierFn = Callable[["Entry", Mapping[str, "EntrySnapshot"]], None]
AssociatorFn = Callable[["Matcher", "AssociationParams"], "bool | None"]
PreRulesFn = Callable[["Matcher", "Source", "PreRuleNeighbors"], bool]
ValuatorFn = Callable[["Matcher", "Source", Any], float]
PostRulesFn = Callable[["Matcher", "Source", float, "PostRuleNeighbors"], bool]


def _expect_bool(result: object, hook: str, type_name: str) -> bool:
    if not isinstance(result, bool):
        raise TypeError(f"{hook} for entry type `{type_name}` returned {result!r}, expected a bool")
    return result


@dataclass(frozen=True)
class EntryType:
    """Hooks and defaults for one entry type."""

    name: str
    validator: ValidatorFn | None = None
    modifier: ModifierFn | None = None
    associator: AssociatorFn | None = None
    pre_rules: PreRulesFn | None = None
    valuator: ValuatorFn | None = None
    post_rules: PostRulesFn | None = None
    sources: frozenset[str] | None = None
    priority: float | None = None

    def validate(self, entry: Entry) -> list[str]:
        if self.validator is None:
            return []
        return list(self.validator(entry))

    def modify(self, entry: Entry, snapshots: Mapping[str, EntrySnapshot]) -> None:
        if self.modifier is not None:
            self.modifier(entry, snapshots)

    def associate(self, matcher: Matcher, params: AssociationParams) -> bool:
        result = None
        if self.associator is not None:
            result = self.associator(matcher, params)
        if result is None:
            return default_associator(matcher, params)
        return _expect_bool(result, "associator", self.name)

    def check_pre_rules(self, matcher: Matcher, source: Source, neighbors: PreRuleNeighbors) -> bool:
        if self.pre_rules is None:
            return True
        return _expect_bool(self.pre_rules(matcher, source, neighbors), "pre_rules", self.name)

    def value(self, matcher: Matcher, source: Source, subject: Any) -> float:
        if self.valuator is None:
            return 1
        score = self.valuator(matcher, source, subject)
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            raise TypeError(
                f"valuator for entry type `{self.name}` returned {score!r}, expected a number"
            )
        return score

    def check_post_rules(
        self, matcher: Matcher, source: Source, score: float, neighbors: PostRuleNeighbors
    ) -> bool:
        if self.post_rules is None:
            return True
        result = self.post_rules(matcher, source, score, neighbors)
        return _expect_bool(result, "post_rules", self.name)


class TypeRegistry:
    """Maps a type tag to its `EntryType`."""

    def __init__(self) -> None:
        self._types: dict[str, EntryType] = {}

    def register(self, entry_type: EntryType, replace: bool = False) -> EntryType:
        if not entry_type.name:
            raise ValueError("Entry types must be named")
        if entry_type.name in self._types and not replace:
            raise ValueError(f"Entry type `{entry_type.name}` is already registered")
        self._types[entry_type.name] = entry_type
        logger.debug("Registered entry type: %s", entry_type.name)
        return entry_type

    def get(self, name: str) -> EntryType | None:
        return self._types.get(name)

    def __getitem__(self, name: str) -> EntryType:
        return self._types[name]

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __iter__(self) -> Iterator[EntryType]:
        return iter(self._types.values())

    def __len__(self) -> int:
        return len(self._types)
