"""Tests for the turn cache."""

from __future__ import annotations

import json

import pytest
from pathlib import Path

from loreweave.cache import CachedWinner, CacheRecord, TurnCache


def make_record(entry_id: str = "a") -> CacheRecord:
    return CacheRecord(
        context_memory=[CachedWinner("ctx", 2.0, None, "implicit")],
        front_memory=CachedWinner("front", 1.0, 5.0, "front_memory"),
        authors_note=None,
        history={0: CachedWinner(entry_id, 1.0, None, 0), 3: CachedWinner("old", 1.0, None, 3)},
    )


@pytest.fixture
def cache() -> TurnCache:
    return TurnCache(storage_size=3)


class TestCacheRecord:
    def test_dict_form(self):
        data = make_record().to_dict()
        assert data["authors_note"] is None
        assert data["history"]["0"] == {
            "entry_id": "a",
            "score": 1.0,
            "priority": None,
            "source": 0,
        }
        assert CacheRecord.from_dict(json.loads(json.dumps(data))) == make_record()

    def test_shifted_moves_history_offsets(self):
        shifted = make_record().shifted(2)
        assert sorted(shifted.history) == [2, 5]
        assert shifted.history[2].source == 2
        assert shifted.context_memory[0].source == "implicit"

    def test_is_empty(self):
        assert CacheRecord().is_empty()
        assert not make_record().is_empty()


class TestTurnCache:
    def test_read_missing_turn(self, cache: TurnCache):
        read = cache.read(1)
        assert read.from_turn is None
        assert not read.is_readable

    def test_write_then_read(self, cache: TurnCache):
        cache.write(1, make_record())
        read = cache.read(1)
        assert read.from_turn == 1
        assert read.record == make_record()

    def test_reads_are_copies(self, cache: TurnCache):
        cache.write(1, make_record())
        cache.read(1).record.history.clear()
        assert cache.read(1).record.history

    def test_loose_read_shifts_from_earlier_turn(self, cache: TurnCache):
        cache.write(4, make_record())
        read = cache.read(6, loose=True)
        assert read.from_turn == 4
        assert sorted(read.record.history) == [2, 5]
        assert read.record.history[2].entry_id == "a"

    def test_loose_read_never_looks_ahead(self, cache: TurnCache):
        cache.write(4, make_record())
        assert cache.read(3, loose=True).record is None

    def test_write_discards_later_turns(self, cache: TurnCache):
        cache.write(1, make_record())
        cache.write(2, make_record())
        cache.write(3, make_record())
        cache.write(2, make_record("b"))
        assert cache.turns == [1, 2]
        assert cache.read(2).record.history[0].entry_id == "b"

    def test_keeps_only_newest_turns(self, cache: TurnCache):
        for turn in range(1, 6):
            cache.write(turn, make_record())
        assert cache.turns == [3, 4, 5]

    def test_empty_records_are_dropped(self, cache: TurnCache):
        cache.write(1, make_record())
        cache.write(1, CacheRecord())
        assert len(cache) == 0

    def test_clear(self, cache: TurnCache):
        cache.write(1, make_record())
        cache.clear()
        assert len(cache) == 0


class TestPersistence:
    def test_round_trips_through_file(self, tmp_path: Path):
        path = tmp_path / "state" / "cache.json"
        TurnCache(path=path).write(7, make_record())
        assert path.exists()
        reloaded = TurnCache(path=path)
        assert reloaded.read(7).record == make_record()

    def test_unreadable_file_starts_empty(self, tmp_path: Path):
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        assert len(TurnCache(path=path)) == 0

    @pytest.mark.parametrize(
        "content",
        [
            "[]",
            '{"turns": []}',
            '{"turns": {"seven": {}}}',
            '"cache"',
        ],
    )
    def test_misshapen_file_starts_empty(self, tmp_path: Path, content: str):
        path = tmp_path / "cache.json"
        path.write_text(content, encoding="utf-8")
        cache = TurnCache(path=path)
        assert len(cache) == 0
        cache.write(1, make_record())
        assert TurnCache(path=path).turns == [1]

    def test_clear_removes_file(self, tmp_path: Path):
        path = tmp_path / "cache.json"
        cache = TurnCache(path=path)
        cache.write(1, make_record())
        cache.clear()
        assert not path.exists()
