"""Tests for the entry library and candidate parsing."""

from __future__ import annotations

import pytest
from pathlib import Path

from loreweave.engine.entry import BadEntryError, KeywordDef, UnknownTypeError
from loreweave.engine.registry import EntryType
from loreweave.engine.relator import ALL_OF, RelationDef
from loreweave.engine.sources import HISTORY, IMPLICIT, TARGET_SOURCES
from loreweave.engine.standard import default_registry
from loreweave.library import Candidate, EntryLibrary, build_entry


@pytest.fixture
def registry():
    registry = default_registry()
    registry.register(EntryType("Lore"))
    registry.register(EntryType("Rumor", sources=frozenset({IMPLICIT}), priority=-5))
    return registry


@pytest.fixture
def library_dir(tmp_path: Path) -> Path:
    root = tmp_path / "library"
    (root / "places").mkdir(parents=True)
    (root / "places" / "castle.md").write_text(
        "---\n"
        "type: Lore\n"
        "keys: [Castle]\n"
        "matchers: [castle, -sand, ':King']\n"
        "priority: 3\n"
        "---\n"
        "The castle looms over the valley.\n",
        encoding="utf-8",
    )
    (root / "sword.md").write_text(
        "---\n"
        "id: excalibur\n"
        "declaration: '$Lore[Sword](\"excalibur\")'\n"
        "---\n"
        "Excalibur, the sword of kings.\n",
        encoding="utf-8",
    )
    return root


class TestBuildEntry:
    def test_from_declaration(self, registry):
        entry = build_entry(Candidate("1", "Text.", declaration="$Lore[King](king; :Crown)"), registry)
        assert entry.type == "Lore"
        assert entry.keys == {"King"}
        assert entry.keywords == [KeywordDef("include", "king")]
        assert entry.relations == (RelationDef(ALL_OF, "Crown"),)
        assert entry.sources == TARGET_SOURCES

    def test_from_structured_fields(self, registry):
        candidate = Candidate("1", "Text.", type="Lore", keys=["King"], matchers=["king", "!Queen"])
        entry = build_entry(candidate, registry)
        assert entry.keys == {"King"}
        assert entry.relator.negated == {"Queen"}

    def test_vanilla_declaration(self, registry):
        entry = build_entry(Candidate("1", "Text.", declaration="sword, shield"), registry)
        assert entry.type == "Vanilla"
        assert entry.sources == frozenset({HISTORY})

    def test_type_defaults(self, registry):
        entry = build_entry(Candidate("1", "Text.", type="Rumor"), registry)
        assert entry.sources == frozenset({IMPLICIT})
        assert entry.priority == -5

    def test_candidate_overrides_type_defaults(self, registry):
        candidate = Candidate("1", "Text.", type="Rumor", priority=2, sources=["history"])
        entry = build_entry(candidate, registry)
        assert entry.sources == frozenset({HISTORY})
        assert entry.priority == 2.0

    def test_unknown_type(self, registry):
        with pytest.raises(UnknownTypeError, match="Dragon"):
            build_entry(Candidate("1", declaration="$Dragon[Smaug]"), registry)

    def test_unknown_source(self, registry):
        with pytest.raises(BadEntryError, match="nowhere"):
            build_entry(Candidate("1", type="Lore", sources=["nowhere"]), registry)

    def test_bad_priority(self, registry):
        with pytest.raises(BadEntryError):
            build_entry(Candidate("1", type="Lore", priority="high"), registry)

    def test_missing_type(self, registry):
        with pytest.raises(BadEntryError):
            build_entry(Candidate("1", text="No type here."), registry)

    def test_non_string_declaration(self, registry):
        with pytest.raises(BadEntryError, match="declaration must be a string"):
            build_entry(Candidate("1", declaration=42), registry)

    def test_non_string_label(self):
        assert Candidate("1", declaration=42).label == "Entry#1<42>"

    def test_label(self):
        assert Candidate("1", declaration="$Lore[King]").label == "Entry#1<$Lore[King]>"
        assert Candidate("2", type="Lore").label == "Entry#2<$Lore>"


class TestEntryLibrary:
    def test_loads_candidates(self, library_dir: Path, registry):
        candidates, issues = EntryLibrary(library_dir).load()
        assert issues == {}
        by_id = {c.entry_id: c for c in candidates}
        assert set(by_id) == {"places/castle", "excalibur"}

        castle = by_id["places/castle"]
        assert castle.type == "Lore"
        assert castle.keys == ["Castle"]
        assert castle.matchers == ["castle", "-sand", ":King"]
        assert castle.priority == 3
        assert castle.text.strip() == "The castle looms over the valley."

        entry = build_entry(by_id["excalibur"], registry)
        assert entry.keys == {"Sword"}
        assert entry.keywords == [KeywordDef("include", "excalibur", exact=True)]

    def test_malformed_frontmatter_is_reported(self, library_dir: Path):
        (library_dir / "broken.md").write_text(
            "---\ntype: [unclosed\n---\nBody.\n", encoding="utf-8"
        )
        candidates, issues = EntryLibrary(library_dir).load()
        assert len(candidates) == 2
        assert list(issues) == ["Entry#broken"]

    def test_missing_directory(self, tmp_path: Path):
        candidates, issues = EntryLibrary(tmp_path / "nope").load()
        assert candidates == []
        assert issues == {}

    def test_non_string_declaration_is_reported(self, library_dir: Path):
        (library_dir / "bad.md").write_text(
            "---\ndeclaration: 42\n---\nBody.\n", encoding="utf-8"
        )
        (library_dir / "listed.md").write_text(
            "---\ntype: [Lore, Rumor]\n---\nBody.\n", encoding="utf-8"
        )
        candidates, issues = EntryLibrary(library_dir).load()
        assert {c.entry_id for c in candidates} == {"places/castle", "excalibur"}
        assert issues["Entry#bad"] == ["The declaration must be a string, got `42`."]
        assert list(issues) == ["Entry#bad", "Entry#listed"]
