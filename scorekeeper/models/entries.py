"""
Score entry records.

Contains:
- EntrySource: Who produced an entry
- ScoreEntry: Immutable, additive unit of score (the only append-only ledger)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..config.constants import UNCATEGORIZED_BUCKET


class EntrySource(str, Enum):
    """Origin of a score entry."""
    MANUAL = "manual"
    RULE_ENGINE = "rule-engine"

    @classmethod
    def parse(cls, raw: Any) -> "EntrySource":
        """Parse a persisted source tag (accepts the legacy 'ruleEngine')."""
        if raw in (None, ""):
            return cls.MANUAL
        if raw == "ruleEngine":
            return cls.RULE_ENGINE
        return cls(raw)


@dataclass(frozen=True)
class ScoreEntry:
    """
    A single additive score entry.

    Entries are never edited; corrections are new entries. Entries without a
    category are bucketed under UNCATEGORIZED_BUCKET.
    """
    id: str
    player_id: str
    value: float
    created_at: int = 0
    round_id: str | None = None
    category_id: str | None = None
    source: EntrySource = EntrySource.MANUAL
    note: str | None = None

    def __post_init__(self):
        """Validate entry."""
        if not self.player_id:
            raise ValueError("ScoreEntry: player_id is required")

    @property
    def bucket(self) -> str:
        """Category key this entry contributes to."""
        return self.category_id or UNCATEGORIZED_BUCKET

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for serialization."""
        result: dict[str, Any] = {
            "id": self.id,
            "playerId": self.player_id,
            "value": self.value,
            "createdAt": self.created_at,
            "source": self.source.value,
        }
        if self.round_id is not None:
            result["roundId"] = self.round_id
        if self.category_id is not None:
            result["categoryId"] = self.category_id
        if self.note is not None:
            result["note"] = self.note
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ScoreEntry":
        """Create from dict."""
        return cls(
            id=d["id"],
            player_id=d["playerId"],
            value=float(d["value"]),
            created_at=int(d.get("createdAt", 0) or 0),
            round_id=d.get("roundId"),
            category_id=d.get("categoryId"),
            source=EntrySource.parse(d.get("source")),
            note=d.get("note"),
        )
