"""Entry library: candidates authored as markdown files with YAML frontmatter.

    ---
    type: Lore
    keys: [Excalibur]
    matchers: [sword, -wooden, ":King"]
    priority: 10
    sources: [history, implicit_ref]
    ---
    Excalibur is the sword of the king.

A `declaration` field (`$Lore[Excalibur](sword; -wooden; :King)`) may be used
in place of `type`, `keys` and `matchers`. Files are identified by `id`, or by
their path relative to the library root.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import frontmatter

from loreweave.engine.entry import (
    BadEntryError,
    Entry,
    UnknownTypeError,
    parse_declaration,
    parse_fragments,
    split_matchers,
    validate_keys,
)
from loreweave.engine.registry import TypeRegistry
from loreweave.engine.sources import TARGET_SOURCES

logger = logging.getLogger(__name__)


@dataclass
class Candidate:
    """An authored entry before it is parsed."""

    entry_id: str
    text: str = ""
    declaration: str | None = None
    type: str | None = None
    keys: list[str] = field(default_factory=list)
    matchers: list[str] = field(default_factory=list)
    priority: float | None = None
    sources: list[str] | None = None

    @property
    def label(self) -> str:
        if self.declaration:
            return f"Entry#{self.entry_id}<{str(self.declaration).strip()}>"
        if self.type:
            return f"Entry#{self.entry_id}<${self.type}>"
        return f"Entry#{self.entry_id}"


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def _require_text(**fields: Any) -> None:
    for name, value in fields.items():
        if value is not None and not isinstance(value, str):
            raise BadEntryError(f"The {name} must be a string, got `{value}`.")


def _resolve_sources(names: list[str] | None, default: frozenset[str] | None) -> frozenset[str]:
    if names is None:
        return default if default is not None else TARGET_SOURCES
    unknown = [n for n in names if n not in TARGET_SOURCES]
    if unknown:
        raise BadEntryError(f"Unknown target source(s): {', '.join(unknown)}")
    return frozenset(names)


def _resolve_priority(value: Any, default: float | None) -> float | None:
    if value is None:
        return default
    if isinstance(value, bool):
        raise BadEntryError(f"Priority must be a number, got `{value}`.")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise BadEntryError(f"Priority must be a number, got `{value}`.") from e


def build_entry(candidate: Candidate, registry: TypeRegistry) -> Entry:
    """Parse a candidate into an entry.

    Raises `BadEntryError` for malformed candidates and `UnknownTypeError`
    when the type has no registered handler.
    """
    _require_text(declaration=candidate.declaration, type=candidate.type)
    if candidate.declaration:
        parsed = parse_declaration(candidate.declaration)
        type_name, keys = parsed.type, parsed.keys
        keywords, relations = parsed.keywords, parsed.relations
    else:
        if not candidate.type:
            raise BadEntryError("The entry declares no type.")
        type_name = candidate.type
        keys = validate_keys(candidate.keys)
        keywords, relations = split_matchers(parse_fragments(candidate.matchers))

    entry_type = registry.get(type_name)
    if entry_type is None:
        raise UnknownTypeError(type_name)

    return Entry(
        entry_id=candidate.entry_id,
        type=type_name,
        keys=set(keys),
        keywords=keywords,
        relations=tuple(relations),
        text=candidate.text.strip(),
        priority=_resolve_priority(candidate.priority, entry_type.priority),
        sources=_resolve_sources(candidate.sources, entry_type.sources),
        declaration=candidate.declaration or "",
    )


def candidate_from_post(entry_id: str, post: frontmatter.Post) -> Candidate:
    meta = dict(post.metadata)
    _require_text(declaration=meta.get("declaration"), type=meta.get("type"))
    matchers = meta.get("matchers")
    if isinstance(matchers, str):
        matchers = matchers.split(";")
    sources = meta.get("sources")
    return Candidate(
        entry_id=str(meta.get("id", entry_id)),
        text=post.content,
        declaration=meta.get("declaration"),
        type=meta.get("type"),
        keys=_as_list(meta.get("keys")),
        matchers=_as_list(matchers),
        priority=meta.get("priority"),
        sources=None if sources is None else _as_list(sources),
    )


class EntryLibrary:
    """Reads candidates from a directory tree of markdown files."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _default_id(self, path: Path) -> str:
        return path.relative_to(self.root).with_suffix("").as_posix()

    def load(self) -> tuple[list[Candidate], dict[str, list[str]]]:
        """Return the readable candidates and the issues of unreadable files."""
        candidates: list[Candidate] = []
        issues: dict[str, list[str]] = {}
        if not self.root.is_dir():
            logger.warning("Entry library %s does not exist", self.root)
            return candidates, issues

        for path in sorted(self.root.rglob("*.md")):
            entry_id = self._default_id(path)
            try:
                post = frontmatter.load(str(path))
            except Exception as e:
                logger.warning("Malformed entry file %s: %s", path, e)
                issues.setdefault(f"Entry#{entry_id}", []).append(
                    f"Could not read frontmatter: {e}"
                )
                continue
            try:
                candidates.append(candidate_from_post(entry_id, post))
            except BadEntryError as e:
                logger.warning("Malformed entry file %s: %s", path, e)
                issues.setdefault(f"Entry#{entry_id}", []).append(str(e))

        logger.debug("Loaded %d candidates from %s", len(candidates), self.root)
        return candidates, issues
