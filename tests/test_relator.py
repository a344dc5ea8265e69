"""Tests for relation checks against the key-usage ledger."""

from __future__ import annotations

import pytest

from loreweave.engine.entry import Entry
from loreweave.engine.relator import (
    ALL_OF,
    AT_LEAST_ONE,
    IMMEDIATE,
    NEGATED,
    RelationDef,
    Relator,
    iter_used_keys,
    record_keys,
    set_relations,
)


def relator(*relations: tuple[str, str]) -> Relator:
    return Relator.from_relations(RelationDef(kind, key) for kind, key in relations)


@pytest.fixture
def used_keys() -> dict[int, set[str]]:
    return {0: {"Queen"}, 2: {"King", "Castle"}, 5: {"Dragon"}}


class TestLedger:
    def test_record_keys(self):
        ledger: dict[int, set[str]] = {}
        record_keys(ledger, 3, ["King"])
        record_keys(ledger, 3, ["Castle"])
        record_keys(ledger, 4, [])
        assert ledger == {3: {"King", "Castle"}}

    def test_iter_used_keys_is_inclusive(self, used_keys):
        assert set(iter_used_keys(used_keys, 0, 2)) == {"Queen", "King", "Castle"}
        assert set(iter_used_keys(used_keys, 2)) == {"King", "Castle"}
        assert set(iter_used_keys(used_keys, 3, 4)) == set()


class TestRelatorCheck:
    def test_no_relations_is_zero(self, used_keys):
        assert Relator().check(used_keys, 0, 20) == 0

    def test_all_of(self, used_keys):
        rel = relator((ALL_OF, "King"), (ALL_OF, "Castle"))
        assert rel.check(used_keys, 0, 20) == 2
        assert rel.check(used_keys, 3, 20) is None

    def test_all_of_partial_fails(self, used_keys):
        rel = relator((ALL_OF, "King"), (ALL_OF, "Dragon"))
        assert rel.check(used_keys, 0, 2) is None
        assert rel.check(used_keys, 0, 5) == 2

    def test_at_least_one_counts_found_keys(self, used_keys):
        rel = relator((AT_LEAST_ONE, "King"), (AT_LEAST_ONE, "Dragon"), (AT_LEAST_ONE, "Elf"))
        assert rel.check(used_keys, 0, 2) == 1
        assert rel.check(used_keys, 0, 20) == 2
        assert rel.check(used_keys, 6, 20) is None

    def test_immediate_only_looks_at_start(self, used_keys):
        rel = relator((IMMEDIATE, "King"))
        assert rel.check(used_keys, 2, 20) == 1
        assert rel.check(used_keys, 0, 20) is None

    def test_negated_fails_anywhere_in_window(self, used_keys):
        rel = relator((NEGATED, "Dragon"))
        assert rel.check(used_keys, 0, 4) == 0
        assert rel.check(used_keys, 0, 5) is None

    def test_negated_with_positive(self, used_keys):
        rel = relator((ALL_OF, "King"), (NEGATED, "Queen"))
        assert rel.check(used_keys, 0, 20) is None
        assert rel.check(used_keys, 1, 20) == 1

    def test_keys_of_interest(self):
        rel = relator((ALL_OF, "King"), (NEGATED, "Queen"))
        assert rel.keys_for_match == {"King"}
        assert rel.keys_of_interest == {"King", "Queen"}
        assert rel.is_interested_in(["Queen"])
        assert not rel.is_interested_in(["Dragon"])

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            RelationDef("sometimes", "King")


class TestSetRelations:
    def test_rebuilds_relator(self):
        entry = Entry("1", "Lore", relations=(RelationDef(ALL_OF, "King"),))
        updated = set_relations(entry, [RelationDef(NEGATED, "Dragon")])
        assert updated is entry.relator
        assert entry.relator.all_of == frozenset()
        assert entry.relator.negated == {"Dragon"}
        assert entry.relations == (RelationDef(NEGATED, "Dragon"),)
