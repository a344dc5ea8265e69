"""Association phase: decide which entries belong to which sources.

The building blocks below make up the default associator. Entry types with
their own associator can reuse them piecemeal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from loreweave.engine.relator import record_keys
from loreweave.engine.sources import (
    AUTHORS_NOTE,
    FRONT_MEMORY,
    HISTORY,
    IMPLICIT,
    IMPLICIT_REF,
    PLAYER_MEMORY,
    AssociationParams,
)

if TYPE_CHECKING:
    from loreweave.engine.context import TurnContext
    from loreweave.engine.entry import Entry
    from loreweave.engine.matcher import Matcher

logger = logging.getLogger(__name__)


def check_keywords(matcher: Matcher, params: AssociationParams) -> bool:
    """Fail on empty text or any exclusive hit, then require an inclusive hit."""
    text = params.text
    if not text or not text.strip():
        return False
    if matcher.has_excluded_words(text):
        return False
    return matcher.has_included_words(text)


def check_relations(matcher: Matcher, params: AssociationParams) -> bool:
    """Check relations against the keys used from this offset to the window edge.

    Only history offsets have a key-usage ledger; other sources pass.
    """
    relator = matcher.entry.relator
    if not relator.keys_of_interest or not params.is_history:
        return True
    used_keys = params.used_keys if params.used_keys is not None else {}
    end = max(params.source, params.window_end)
    return relator.check(used_keys, params.source, end) is not None


def record_key_usage(matcher: Matcher, params: AssociationParams) -> None:
    if not params.is_history or params.used_keys is None:
        return
    record_keys(params.used_keys, params.source, matcher.entry.keys)


def default_associator(matcher: Matcher, params: AssociationParams) -> bool:
    if not check_keywords(matcher, params):
        return False
    if not check_relations(matcher, params):
        return False
    record_key_usage(matcher, params)
    return True


def _dependency_depths(entries: list[Entry]) -> dict[str, int]:
    """How many layers of key references sit beneath each entry."""
    providers: dict[str, list[Entry]] = {}
    for entry in entries:
        for key in entry.keys:
            providers.setdefault(key, []).append(entry)

    depths: dict[str, int] = {}
    visiting: set[str] = set()

    def depth_of(entry: Entry) -> int:
        if entry.entry_id in depths:
            return depths[entry.entry_id]
        if entry.entry_id in visiting:
            # Reference cycle; break it here.
            return 0
        visiting.add(entry.entry_id)
        depth = 0
        for key in sorted(entry.relator.keys_of_interest):
            for provider in providers.get(key, ()):
                if provider.entry_id != entry.entry_id:
                    depth = max(depth, depth_of(provider) + 1)
        visiting.discard(entry.entry_id)
        depths[entry.entry_id] = depth
        return depth

    for entry in entries:
        depth_of(entry)
    return depths


def presort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Stable order in which referenced entries come before those referencing them."""
    entries = list(entries)
    depths = _dependency_depths(entries)
    return sorted(
        entries,
        key=lambda e: (depths[e.entry_id], 0 if e.keys else 1, len(e.relations)),
    )


def _targets(matcher: Matcher, capability: str) -> bool:
    return capability in matcher.entry.sources


def iter_association_pairs(ctx: TurnContext) -> Iterator[tuple[Matcher, AssociationParams]]:
    """Yield (matcher, params) pairs in association order.

    Implicit-ref pairs are produced lazily, so they see every implicit
    association made before them.
    """
    slots = [
        (IMPLICIT, True, None),
        (PLAYER_MEMORY, bool(ctx.player_memory), ctx.player_memory),
        (AUTHORS_NOTE, ctx.authors_note_open, None),
        (FRONT_MEMORY, ctx.front_memory_open, None),
    ]
    for matcher in ctx.matchers:
        for source, available, text in slots:
            if available and _targets(matcher, source):
                yield matcher, AssociationParams(source, text=text)

    for matcher in ctx.matchers:
        if not _targets(matcher, IMPLICIT_REF):
            continue
        for ref in list(ctx.associated_entries(IMPLICIT)):
            if ref.entry_id == matcher.entry_id:
                continue
            yield matcher, AssociationParams(IMPLICIT_REF, text=ref.text, ref=ref)

    for offset in ctx.history_offsets():
        text = ctx.history_text(offset)
        for matcher in ctx.matchers:
            if not _targets(matcher, HISTORY):
                continue
            yield matcher, AssociationParams(
                offset,
                text=text,
                used_keys=ctx.used_keys,
                window_end=ctx.history_window,
            )


def associate_state(ctx: TurnContext) -> None:
    for matcher, params in iter_association_pairs(ctx):
        if ctx.is_associated(params.source, matcher.entry_id):
            continue
        entry_type = ctx.entry_type(matcher.entry)
        if not entry_type.associate(matcher, params):
            continue
        ctx.associate(params.source, matcher.entry_id)
        if params.source == IMPLICIT_REF and params.ref is not None:
            ctx.ref_subjects.setdefault(matcher.entry_id, params.ref)

    logger.debug(
        "Association: %s",
        {str(source): len(ids) for source, ids in ctx.associations.items() if ids},
    )
