"""Valuation, weighted ranking and winner selection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from loreweave.engine.neighbors import PostRuleNeighbors
from loreweave.engine.roulette import Roulette
from loreweave.engine.sources import (
    IMPLICIT,
    IMPLICIT_REF,
    PLAYER_MEMORY,
    Source,
    is_history,
    source_label,
)

if TYPE_CHECKING:
    from loreweave.engine.context import TurnContext
    from loreweave.engine.matcher import Matcher

logger = logging.getLogger(__name__)

Contestants = list[tuple["Matcher", float]]


def valuation_subject(ctx: TurnContext, matcher: Matcher, source: Source) -> Any:
    """What a valuator scores against: a text, a referenced entry, or nothing."""
    if is_history(source):
        return ctx.history_text(source)
    if source == PLAYER_MEMORY:
        return ctx.player_memory
    if source == IMPLICIT_REF:
        return ctx.ref_subjects.get(matcher.entry_id)
    return None


def clamp_score(score: float, cap: float) -> float:
    return max(0.0, min(float(cap), float(score)))


def rank_contestants(ctx: TurnContext) -> list[tuple[Source, Contestants]]:
    """Score every surviving pair and draw a fallback-ordered ranking per source.

    Sources come back in association order. Pairs scoring zero or less never
    enter the draw.
    """
    ranked: list[tuple[Source, Contestants]] = []
    ctx.scores = {}
    for source in ctx.association_order():
        wheel: Roulette[Matcher] = Roulette(ctx.rng)
        for matcher in ctx.matchers:
            if not ctx.is_associated(source, matcher.entry_id):
                continue
            entry_type = ctx.entry_type(matcher.entry)
            subject = valuation_subject(ctx, matcher, source)
            score = clamp_score(entry_type.value(matcher, source, subject), ctx.score_cap)
            if score <= 0:
                continue
            wheel.push(score, matcher)
        if not len(wheel):
            continue
        contestants = list(wheel.drain())
        ctx.scores[source] = {m.entry_id: score for m, score in contestants}
        ranked.append((source, contestants))
    return ranked


def select_winners(ctx: TurnContext, ranked: list[tuple[Source, Contestants]]) -> dict[Source, list[str]]:
    """Walk the rankings in finalize order and pick the winners.

    Ordinary sources keep their first accepted contestant. The implicit source
    keeps one accepted contestant per entry type. An entry wins at most one
    source per turn. The winners replace the working associations.
    """
    by_source = dict(ranked)
    used_ids: set[str] = set()
    winners: dict[Source, list[str]] = {}
    ctx.winners = []

    for source in ctx.finalize_order():
        contestants = by_source.get(source)
        if not contestants:
            continue
        used_types: set[str] = set()
        picked: list[str] = []
        for matcher, score in contestants:
            if matcher.entry_id in used_ids:
                continue
            if source == IMPLICIT and matcher.type in used_types:
                continue
            entry_type = ctx.entry_type(matcher.entry)
            neighbors = PostRuleNeighbors(ctx, matcher.entry_id, source)
            if not entry_type.check_post_rules(matcher, source, score, neighbors):
                continue
            used_ids.add(matcher.entry_id)
            used_types.add(matcher.type)
            ctx.winners.append((source, matcher.entry_id))
            picked.append(matcher.entry_id)
            if source != IMPLICIT:
                break
        if picked:
            winners[source] = picked
            logger.debug(
                "%s won by %s",
                source_label(source),
                ", ".join(ctx.entries[entry_id].describe() for entry_id in picked),
            )

    ctx.associations = {source: dict.fromkeys(ids) for source, ids in winners.items()}
    return winners
