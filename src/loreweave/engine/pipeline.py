"""The turn pipeline, from authored candidates to packed output."""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from loreweave.cache import CachedWinner, CacheRecord
from loreweave.engine.association import associate_state, presort_entries
from loreweave.engine.context import TurnContext
from loreweave.engine.entry import BadEntryError
from loreweave.engine.matcher import Matcher
from loreweave.engine.output import PackedOutput, build_output, to_sortable
from loreweave.engine.registry import TypeRegistry
from loreweave.engine.relator import set_relations
from loreweave.engine.rules import apply_pre_rules
from loreweave.engine.selection import rank_contestants, select_winners
from loreweave.engine.sorting import entry_sorter
from loreweave.engine.sources import AUTHORS_NOTE, FRONT_MEMORY, IMPLICIT, IMPLICIT_REF, PLAYER_MEMORY
from loreweave.library import Candidate, build_entry
from loreweave.report import format_issues

logger = logging.getLogger(__name__)

CONTEXT_MEMORY_SOURCES = (IMPLICIT, IMPLICIT_REF, PLAYER_MEMORY)


@dataclass
class TurnInput:
    """What the host hands over each turn.

    `history` holds the prior turns' texts, oldest first; `text` is the
    current input. A non-empty `authors_note` or `front_memory` means the slot
    is already taken and will not be filled.
    """

    text: str
    history: list[str] = field(default_factory=list)
    turn: int = 0
    player_memory: str = ""
    authors_note: str = ""
    front_memory: str = ""
    summary: str = ""


@dataclass
class TurnResult:
    use_ai: bool
    message: str | None = None
    issues: dict[str, list[str]] = field(default_factory=dict)
    record: CacheRecord | None = None
    output: PackedOutput | None = None


def new_context(
    registry: TypeRegistry,
    rng: random.Random | None = None,
    history_window: int = 20,
    score_cap: float = 1000.0,
) -> TurnContext:
    return TurnContext(
        registry=registry,
        rng=rng or random.Random(),
        history_window=history_window,
        score_cap=score_cap,
    )


def create_entries(ctx: TurnContext, candidates: Iterable[Candidate]) -> None:
    """Build entries, isolating and reporting the candidates that fail to parse."""
    for candidate in candidates:
        try:
            if candidate.entry_id in ctx.entries:
                raise BadEntryError(f"Duplicate entry id `{candidate.entry_id}`.")
            entry = build_entry(candidate, ctx.registry)
        except BadEntryError as e:
            logger.warning("Skipping %s: %s", candidate.label, e)
            ctx.add_issue(candidate.label, str(e))
            continue
        ctx.entries[entry.entry_id] = entry
    logger.debug("Created %d entries", len(ctx.entries))


def validate_entries(ctx: TurnContext) -> None:
    """Drop entries that fail their type's validator; any failure suppresses the turn."""
    for entry_id in list(ctx.entries):
        entry = ctx.entries[entry_id]
        issues = ctx.entry_type(entry).validate(entry)
        if not issues:
            continue
        del ctx.entries[entry_id]
        ctx.validation_failed = True
        for issue in issues:
            ctx.add_issue(entry.describe(), issue)


def modify_entries(ctx: TurnContext) -> None:
    """Let each type adjust its entries, seeing read-only copies of all of them."""
    snapshots = {entry_id: entry.snapshot() for entry_id, entry in ctx.entries.items()}
    for entry in list(ctx.entries.values()):
        ctx.entry_type(entry).modify(entry, snapshots)


def finalize_for_processing(ctx: TurnContext, turn_input: TurnInput) -> None:
    """Freeze entries into ordered matchers and set up the working history."""
    for entry in ctx.entries.values():
        set_relations(entry, entry.relations)
    ctx.matchers = [Matcher(entry, ctx.counter) for entry in presort_entries(ctx.entries.values())]

    window = ctx.history_window
    prior = list(turn_input.history[-window:]) if window > 0 else []
    ctx.history = [*prior, turn_input.text]
    ctx.player_memory = turn_input.player_memory
    ctx.authors_note_open = not turn_input.authors_note
    ctx.front_memory_open = not turn_input.front_memory


def build_cache_record(ctx: TurnContext) -> CacheRecord:
    """Bucket the winners; context-memory winners are stored in natural order."""
    record = CacheRecord()
    for source, entry_id in ctx.winners:
        entry = ctx.entries[entry_id]
        winner = CachedWinner(
            entry_id=entry_id,
            score=ctx.scores.get(source, {}).get(entry_id, 0),
            priority=entry.priority,
            source=source,
        )
        if source in CONTEXT_MEMORY_SOURCES:
            record.context_memory.append(winner)
        elif source == FRONT_MEMORY:
            record.front_memory = winner
        elif source == AUTHORS_NOTE:
            record.authors_note = winner
        else:
            record.history[int(source)] = winner

    sortables = [to_sortable(w, ctx.entries[w.entry_id]) for w in record.context_memory]
    record.context_memory = [s.payload for s in entry_sorter(sortables)]
    return record


def run_pipeline(
    ctx: TurnContext,
    candidates: Iterable[Candidate],
    turn_input: TurnInput,
    budget: int = 1001,
    load_issues: Mapping[str, list[str]] | None = None,
) -> TurnResult:
    """Run one full turn over `candidates`."""
    for label, issues in (load_issues or {}).items():
        for issue in issues:
            ctx.add_issue(label, issue)

    create_entries(ctx, candidates)
    validate_entries(ctx)
    if ctx.validation_failed:
        message = format_issues(ctx.issues)
        logger.warning("Turn %d suppressed by validation issues", turn_input.turn)
        return TurnResult(use_ai=False, message=message, issues=dict(ctx.issues))

    modify_entries(ctx)
    finalize_for_processing(ctx, turn_input)
    associate_state(ctx)
    removed = apply_pre_rules(ctx)
    logger.debug("Pre-rules removed %d associations", removed)
    select_winners(ctx, rank_contestants(ctx))

    record = build_cache_record(ctx)
    output = build_output(
        record,
        ctx.entries,
        player_memory=turn_input.player_memory,
        summary=turn_input.summary,
        budget=budget,
        authors_note=turn_input.authors_note,
        front_memory=turn_input.front_memory,
    )
    logger.info(
        "Turn %d: %d entries, %d winners, %d context lines",
        turn_input.turn,
        len(ctx.entries),
        len(ctx.winners),
        len(output.context),
    )
    return TurnResult(
        use_ai=True,
        message=format_issues(ctx.issues) if ctx.issues else None,
        issues=dict(ctx.issues),
        record=record,
        output=output,
    )
