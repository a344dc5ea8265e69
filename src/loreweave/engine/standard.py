"""The entry types every registry starts with."""

from __future__ import annotations

from typing import TYPE_CHECKING

from loreweave.engine.association import check_keywords, record_key_usage
from loreweave.engine.entry import VANILLA_TYPE, Entry
from loreweave.engine.registry import EntryType, TypeRegistry
from loreweave.engine.sources import HISTORY, IMPLICIT_REF, PLAYER_MEMORY

if TYPE_CHECKING:
    from loreweave.engine.matcher import Matcher
    from loreweave.engine.sources import AssociationParams

CLASS_TYPE = "Class"

# Plain keyword entries, searched against the history only.
VANILLA = EntryType(VANILLA_TYPE, sources=frozenset({HISTORY}))


def validate_class(entry: Entry) -> list[str]:
    issues = []
    if len(entry.keys) != 1:
        issues.append(f"`{entry.describe()}` must have exactly one key.")
    if not entry.keywords and not entry.relations:
        issues.append(f"`{entry.describe()}` requires at least one matcher.")
    return issues


def associate_class(matcher: Matcher, params: AssociationParams) -> bool:
    """Like the default, but relations only look at the offset being matched."""
    if not check_keywords(matcher, params):
        return False
    relator = matcher.entry.relator
    if relator.keys_of_interest:
        if not params.is_history or params.used_keys is None:
            return False
        if relator.check(params.used_keys, params.source, params.source) is None:
            return False
    record_key_usage(matcher, params)
    return True


# A classification: it shares its key with whatever it matches so other
# entries can relate to it, but its own text is never used.
CLASS = EntryType(
    CLASS_TYPE,
    validator=validate_class,
    associator=associate_class,
    valuator=lambda matcher, source, subject: 0,
    post_rules=lambda matcher, source, score, neighbors: False,
    sources=frozenset({IMPLICIT_REF, PLAYER_MEMORY, HISTORY}),
)

STANDARD_TYPES = (VANILLA, CLASS)


def default_registry() -> TypeRegistry:
    registry = TypeRegistry()
    for entry_type in STANDARD_TYPES:
        registry.register(entry_type)
    return registry
