"""Pre-rule phase: let entry types veto associations before scoring."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from loreweave.engine.neighbors import PreRuleNeighbors
from loreweave.engine.sources import source_label

if TYPE_CHECKING:
    from loreweave.engine.context import TurnContext

logger = logging.getLogger(__name__)


def apply_pre_rules(ctx: TurnContext) -> int:
    """Run each surviving pair through its type's pre-rules.

    Returns the number of associations removed.
    """
    removed = 0
    for source in ctx.pre_rule_order():
        for matcher in ctx.matchers:
            if not ctx.is_associated(source, matcher.entry_id):
                continue
            entry_type = ctx.entry_type(matcher.entry)
            neighbors = PreRuleNeighbors(ctx, matcher.entry_id, source)
            if entry_type.check_pre_rules(matcher, source, neighbors):
                continue
            ctx.dissociate(source, matcher.entry_id)
            removed += 1
            logger.debug(
                "Pre-rules dropped %s from %s", matcher.entry.describe(), source_label(source)
            )
    return removed
