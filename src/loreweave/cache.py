"""Turn cache: the winners of each turn, kept for later turns and reports.

Records are stored per turn index. Writing a turn discards every later turn
(the player undid them), drops empty records and keeps only the newest
`storage_size` turns. When constructed with a path, the cache is mirrored to
a JSON file.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loreweave.engine.sources import Source, is_history

logger = logging.getLogger(__name__)


@dataclass
class CachedWinner:
    entry_id: str
    score: float
    priority: float | None
    source: Source

    def to_dict(self) -> dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "score": self.score,
            "priority": self.priority,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CachedWinner:
        return cls(
            entry_id=str(data["entry_id"]),
            score=data.get("score", 0),
            priority=data.get("priority"),
            source=data["source"],
        )

    def shifted(self, delta: int) -> CachedWinner:
        source = self.source + delta if is_history(self.source) else self.source
        return CachedWinner(self.entry_id, self.score, self.priority, source)


@dataclass
class CacheRecord:
    """One turn's winners, bucketed by where they are shown."""

    context_memory: list[CachedWinner] = field(default_factory=list)
    front_memory: CachedWinner | None = None
    authors_note: CachedWinner | None = None
    history: dict[int, CachedWinner] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (self.context_memory or self.front_memory or self.authors_note or self.history)

    def winners(self) -> list[CachedWinner]:
        result = list(self.context_memory)
        if self.front_memory:
            result.append(self.front_memory)
        if self.authors_note:
            result.append(self.authors_note)
        result.extend(self.history[offset] for offset in sorted(self.history))
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "context_memory": [w.to_dict() for w in self.context_memory],
            "front_memory": self.front_memory.to_dict() if self.front_memory else None,
            "authors_note": self.authors_note.to_dict() if self.authors_note else None,
            "history": {str(offset): w.to_dict() for offset, w in sorted(self.history.items())},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheRecord:
        front = data.get("front_memory")
        note = data.get("authors_note")
        return cls(
            context_memory=[CachedWinner.from_dict(w) for w in data.get("context_memory", [])],
            front_memory=CachedWinner.from_dict(front) if front else None,
            authors_note=CachedWinner.from_dict(note) if note else None,
            history={
                int(offset): CachedWinner.from_dict(w)
                for offset, w in data.get("history", {}).items()
            },
        )

    def shifted(self, delta: int) -> CacheRecord:
        """The record as seen `delta` turns later: every history offset grows."""
        if delta == 0:
            return CacheRecord.from_dict(self.to_dict())
        return CacheRecord(
            context_memory=[w.shifted(delta) for w in self.context_memory],
            front_memory=self.front_memory.shifted(delta) if self.front_memory else None,
            authors_note=self.authors_note.shifted(delta) if self.authors_note else None,
            history={offset + delta: w.shifted(delta) for offset, w in self.history.items()},
        )


@dataclass
class CacheRead:
    from_turn: int | None
    record: CacheRecord | None

    @property
    def is_readable(self) -> bool:
        return self.record is not None


class TurnCache:
    """Per-turn storage of cache records."""

    def __init__(self, storage_size: int = 10, path: Path | None = None) -> None:
        self.storage_size = storage_size
        self.path = path
        self._turns: dict[int, dict[str, Any]] = {}
        if path is not None:
            self._load()

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> list[int]:
        return sorted(self._turns)

    def read(self, turn: int, loose: bool = False) -> CacheRead:
        """Read the record for `turn`.

        With `loose`, fall back to the nearest earlier turn and shift its
        history offsets forward by the distance between the two turns.
        """
        if turn in self._turns:
            return CacheRead(turn, CacheRecord.from_dict(self._turns[turn]))
        if not loose:
            return CacheRead(None, None)

        earlier = [t for t in self._turns if t < turn]
        if not earlier:
            return CacheRead(None, None)
        from_turn = max(earlier)
        record = CacheRecord.from_dict(self._turns[from_turn]).shifted(turn - from_turn)
        return CacheRead(from_turn, record)

    def write(self, turn: int, record: CacheRecord | None) -> None:
        """Store `record` for `turn`; `None` deletes the turn."""
        if record is None or record.is_empty():
            self._turns.pop(turn, None)
        else:
            self._turns[turn] = record.to_dict()
        self._clean(turn)
        self._save()

    def clear(self) -> None:
        self._turns.clear()
        if self.path is not None and self.path.exists():
            self.path.unlink()

    def _clean(self, current_turn: int) -> None:
        kept = sorted(t for t in self._turns if t <= current_turn)
        kept = kept[-self.storage_size:] if self.storage_size > 0 else []
        self._turns = {t: self._turns[t] for t in kept}

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            turns = data.get("turns", {}) if isinstance(data, dict) else None
            if not isinstance(turns, dict):
                raise ValueError("expected a `turns` mapping")
            loaded = {int(turn): record for turn, record in turns.items()}
        except (ValueError, OSError) as e:
            logger.warning("Ignoring unreadable turn cache %s: %s", self.path, e)
            return
        self._turns = {turn: record for turn, record in loaded.items() if isinstance(record, dict)}

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"turns": {str(t): self._turns[t] for t in sorted(self._turns)}}
        self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
