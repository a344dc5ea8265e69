"""Human-readable renderings of issues and cached winners."""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from loreweave.cache import CachedWinner, CacheRecord
from loreweave.engine.entry import Entry, make_excerpt

NO_DATA = "No turn data is available."


def format_issues(issues: Mapping[str, list[str]]) -> str:
    """One consolidated message listing every issue under its entry."""
    lines = ["The following entry issues were discovered:"]
    for label, entry_issues in issues.items():
        lines.append(f"\t{label}")
        lines.extend(f"\t\t• {issue}" for issue in entry_issues)
    return "\n".join(lines)


def _located(record: CacheRecord) -> Iterator[tuple[str, CachedWinner | None]]:
    for winner in record.context_memory:
        yield "Context Memory", winner
    for offset in sorted(record.history):
        yield f"History {offset}", record.history[offset]
    yield "Author's Note", record.authors_note
    yield "Front Memory", record.front_memory


def format_report(record: CacheRecord | None, entries: Mapping[str, Entry]) -> str:
    """List the winners of a turn with their scores, locations and excerpts."""
    if record is None or record.is_empty():
        return NO_DATA

    lines = []
    for location, winner in _located(record):
        if winner is None:
            continue
        entry = entries.get(winner.entry_id)
        if entry is None:
            ident = f"Entry#{winner.entry_id}"
            excerpt = "(No excerpt available.)"
        else:
            ident = entry.describe()
            excerpt = make_excerpt(entry.text) if entry.text else "(No excerpt available.)"
        lines.append(f"{ident} ({winner.score:.2f}) @ {location}\n\t{excerpt}")
    return "\n".join(lines)
