"""Loreweave orchestrator.

Responsibilities:
1. Hold the type registry, entry library and turn cache
2. Run the turn pipeline with a per-turn random source
3. Persist each turn's winners to the turn cache
4. Report on past turns
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable

from loreweave.cache import TurnCache
from loreweave.config import LoreweaveConfig
from loreweave.engine.entry import Entry
from loreweave.engine.pipeline import TurnInput, TurnResult, new_context, run_pipeline
from loreweave.engine.registry import EntryType, TypeRegistry
from loreweave.engine.standard import default_registry
from loreweave.library import Candidate, EntryLibrary
from loreweave.report import format_report

logger = logging.getLogger(__name__)


class Loreweave:
    """Runs turns against the entry library and remembers their winners."""

    def __init__(
        self,
        config: LoreweaveConfig,
        registry: TypeRegistry | None = None,
        library: EntryLibrary | None = None,
        cache: TurnCache | None = None,
    ) -> None:
        self.config = config
        self.registry = registry or default_registry()
        self.library = library or EntryLibrary(config.library_dir)
        self.cache = cache or TurnCache(config.cache.storage_size, config.cache.path)
        self._entries: dict[str, Entry] = {}

    # ── Entry types ──────────────────────────────────────────

    def register_type(self, entry_type: EntryType) -> None:
        self.registry.register(entry_type)
        logger.info("Registered entry type: %s", entry_type.name)

    # ── Turns ────────────────────────────────────────────────

    def _rng_for(self, turn: int) -> random.Random:
        seed = self.config.pipeline.seed
        if seed is None:
            return random.Random()
        return random.Random(f"{seed}:{turn}")

    def run_turn(
        self, turn_input: TurnInput, candidates: Iterable[Candidate] | None = None
    ) -> TurnResult:
        """Run the pipeline for one turn.

        Candidates default to the library's contents. Winners are written to
        the turn cache unless the turn was suppressed.
        """
        load_issues: dict[str, list[str]] = {}
        if candidates is None:
            candidates, load_issues = self.library.load()

        settings = self.config.pipeline
        ctx = new_context(
            self.registry,
            rng=self._rng_for(turn_input.turn),
            history_window=settings.history_window,
            score_cap=settings.score_cap,
        )
        result = run_pipeline(
            ctx,
            candidates,
            turn_input,
            budget=settings.context_budget,
            load_issues=load_issues,
        )
        if result.record is not None:
            self.cache.write(turn_input.turn, result.record)
            self._entries = dict(ctx.entries)
        return result

    # ── Reports ──────────────────────────────────────────────

    def report(self, turn: int) -> str:
        """Describe the winners stored for `turn`, or the nearest earlier turn."""
        read = self.cache.read(turn, loose=True)
        return format_report(read.record, self._entries)

    def reset(self) -> None:
        self.cache.clear()
        self._entries = {}
        logger.info("Cleared turn cache")
