"""Entry data model and the declaration grammar authors write entries in.

A declaration names the entry's type, its keys and its matchers:

    $Lore[Temple & Shrine](temple; -ruined; "altar"; :Goddess)

Declarations without a leading `$` are vanilla entries whose comma-separated
words are plain inclusive keywords.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal, Union

from loreweave.engine.relator import (
    ALL_OF,
    AT_LEAST_ONE,
    IMMEDIATE,
    NEGATED,
    NIL_RELATOR,
    RelationDef,
    Relator,
)
from loreweave.engine.sources import TARGET_SOURCES

VANILLA_TYPE = "Vanilla"

_RE_INFO_ENTRY = re.compile(r"^\$(\w+?)((?:\[|\().*)?$")
_RE_INFO_DECLARATION = re.compile(r"^(?:\[(.*?)\])?(\(.+?\))?$")
_RE_INFO_MATCHERS = re.compile(r"^\((.*)?\)$")
_RE_RELATION = re.compile(r"^([:?@!])\s*(\w+)$")
_RE_KEYWORD = re.compile(r"""^([+-]?)\s*(?:"([\w' ]+)"|([\w' ]+))$""")
_RE_KEY = re.compile(r"^\w+$")

_RELATION_PREFIXES = {":": ALL_OF, "?": AT_LEAST_ONE, "@": IMMEDIATE, "!": NEGATED}


class BadEntryError(ValueError):
    """A candidate could not be parsed into an entry."""


class UnknownTypeError(BadEntryError):
    """A candidate declared a type that has no registered handler."""

    def __init__(self, type_name: str) -> None:
        super().__init__(f"Unknown entry type: `{type_name}`")
        self.type_name = type_name


@dataclass(frozen=True)
class KeywordDef:
    """A case-insensitive text matcher; prefix-tolerant unless `exact`."""

    mode: Literal["include", "exclude"]
    value: str
    exact: bool = False


MatcherDef = Union[KeywordDef, RelationDef]


def parse_matcher(fragment: str) -> MatcherDef | None:
    """Parse a single matcher fragment, e.g. `-ruined`, `"altar"` or `:Goddess`."""
    fragment = fragment.strip()
    if not fragment:
        return None

    matched = _RE_RELATION.match(fragment)
    if matched:
        prefix, key = matched.groups()
        return RelationDef(_RELATION_PREFIXES[prefix], key)

    matched = _RE_KEYWORD.match(fragment)
    if not matched:
        return None
    sign, quoted, bare = matched.groups()
    value = (quoted if quoted is not None else bare).strip()
    if not value:
        return None
    mode = "exclude" if sign == "-" else "include"
    return KeywordDef(mode, value, exact=quoted is not None)


def split_matchers(
    matchers: list[MatcherDef],
) -> tuple[list[KeywordDef], list[RelationDef]]:
    keywords = [m for m in matchers if isinstance(m, KeywordDef)]
    relations = [m for m in matchers if isinstance(m, RelationDef)]
    return keywords, relations


def parse_fragments(fragments: list[str]) -> list[MatcherDef]:
    """Parse every fragment, failing the whole list on the first bad one."""
    matchers: list[MatcherDef] = []
    for fragment in fragments:
        if not fragment.strip():
            continue
        matcher = parse_matcher(fragment)
        if matcher is None:
            raise BadEntryError(f"Could not parse matcher `{fragment.strip()}`.")
        matchers.append(matcher)
    return matchers


def validate_keys(keys: list[str]) -> list[str]:
    cleaned = [str(k).strip() for k in keys]
    for key in cleaned:
        if not key:
            raise BadEntryError("Entry keys cannot be empty.")
        if not _RE_KEY.match(key):
            raise BadEntryError(f"Entry key `{key}` may only contain word characters.")
    return cleaned


@dataclass
class ParsedDeclaration:
    type: str
    keys: list[str]
    keywords: list[KeywordDef]
    relations: list[RelationDef]


def _parse_vanilla(declaration: str) -> ParsedDeclaration:
    matchers: list[MatcherDef] = []
    for text in (s.strip() for s in declaration.split(",")):
        if not text:
            continue
        # Anything unrecognizable is just a plain inclusive keyword.
        matchers.append(parse_matcher(text) or KeywordDef("include", text))
    keywords, relations = split_matchers(matchers)
    return ParsedDeclaration(VANILLA_TYPE, [], keywords, relations)


def parse_declaration(declaration: str) -> ParsedDeclaration:
    """Parse a compact declaration string.

    Raises `BadEntryError` when the declaration is malformed.
    """
    declaration = declaration.strip()
    if not declaration.startswith("$"):
        return _parse_vanilla(declaration)

    if "," in declaration:
        raise BadEntryError(
            "The declaration contains a comma.  "
            "Matchers should be separated by a semi-colon (;), instead."
        )

    matched = _RE_INFO_ENTRY.match(declaration)
    if not matched:
        raise BadEntryError(f"Failed to parse declaration `{declaration}`.")
    type_name, dec_part = matched.groups()

    keys: list[str] = []
    matchers: list[MatcherDef] = []
    if dec_part:
        matched = _RE_INFO_DECLARATION.match(dec_part)
        if not matched:
            raise BadEntryError(f"Failed to parse declaration `{declaration}`.")
        keys_part, matchers_part = matched.groups()
        if keys_part:
            keys = validate_keys(keys_part.split("&"))
        if matchers_part:
            hunk = _RE_INFO_MATCHERS.match(matchers_part)
            if not hunk:
                raise BadEntryError(f"Failed to parse declaration `{declaration}`.")
            matchers = parse_fragments((hunk.group(1) or "").split(";"))

    keywords, relations = split_matchers(matchers)
    return ParsedDeclaration(type_name, keys, keywords, relations)


def make_excerpt(text: str) -> str:
    """Shorten a text to its first ten words."""
    words = [w for w in text.split(" ") if w]
    shortened = words[:10]
    if len(words) == len(shortened):
        return text
    return " ".join(shortened).rstrip(".") + "..."


@dataclass(frozen=True)
class EntrySnapshot:
    """Read-only copy of an entry, handed to modifiers."""

    entry_id: str
    type: str
    keys: frozenset[str]
    keywords: tuple[KeywordDef, ...]
    relations: tuple[RelationDef, ...]
    priority: float | None
    text: str

    @property
    def include(self) -> tuple[KeywordDef, ...]:
        return tuple(kw for kw in self.keywords if kw.mode == "include")

    @property
    def exclude(self) -> tuple[KeywordDef, ...]:
        return tuple(kw for kw in self.keywords if kw.mode == "exclude")


@dataclass
class Entry:
    """One candidate knowledge unit for the current turn."""

    entry_id: str
    type: str
    keys: set[str] = field(default_factory=set)
    keywords: list[KeywordDef] = field(default_factory=list)
    relations: tuple[RelationDef, ...] = ()
    text: str = ""
    priority: float | None = None
    sources: frozenset[str] = TARGET_SOURCES
    declaration: str = ""
    relator: Relator = field(default=NIL_RELATOR, repr=False)

    def __post_init__(self) -> None:
        self.keys = set(self.keys)
        self.keywords = list(self.keywords)
        self.relations = tuple(self.relations)
        self.relator = Relator.from_relations(self.relations)

    @property
    def include(self) -> list[KeywordDef]:
        return [kw for kw in self.keywords if kw.mode == "include"]

    @property
    def exclude(self) -> list[KeywordDef]:
        return [kw for kw in self.keywords if kw.mode == "exclude"]

    def snapshot(self) -> EntrySnapshot:
        return EntrySnapshot(
            entry_id=self.entry_id,
            type=self.type,
            keys=frozenset(self.keys),
            keywords=tuple(self.keywords),
            relations=tuple(self.relations),
            priority=self.priority,
            text=self.text,
        )

    def describe(self, with_excerpt: bool = False) -> str:
        """Render as `Entry#id<$Type[keys]>`, optionally with an excerpt line."""
        key_part = " & ".join(sorted(self.keys))
        type_part = f"${self.type}[{key_part}]" if key_part else f"${self.type}"
        result = f"Entry#{self.entry_id}<{type_part}>"
        if not with_excerpt or not self.text:
            return result
        return f"{result}\n\t{make_excerpt(self.text)}"
