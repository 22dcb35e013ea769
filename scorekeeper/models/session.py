"""
Session-level records the engine reads: rounds, mechanics and settings.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..config.constants import validate_score_direction


@dataclass(frozen=True)
class Round:
    """A round of play. `index` is 1-based."""
    id: str
    index: int
    label: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "index": self.index, "label": self.label or f"Round {self.index}"}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Round":
        return cls(id=d["id"], index=int(d.get("index", 1)), label=d.get("label", ""))


class MechanicType(str, Enum):
    """Template mechanic kinds."""
    TURN_ORDER = "turnOrder"
    PHASE = "phase"
    RESOURCE_MANAGEMENT = "resourceManagement"
    TERRITORY_CONTROL = "territoryControl"
    CARD_HAND = "cardHand"
    DICE_ROLL = "diceRoll"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Mechanic:
    """
    A game mechanic declared on a template.

    Only an enabled PHASE mechanic affects evaluation: it makes PHASE
    active windows true and `phase()` return true.
    """
    id: str
    type: MechanicType
    name: str = ""
    enabled: bool = True
    config: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "config": dict(self.config),
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Mechanic":
        return cls(
            id=d["id"],
            type=MechanicType(d.get("type", MechanicType.CUSTOM.value)),
            name=d.get("name", ""),
            enabled=bool(d.get("enabled", True)),
            config=dict(d.get("config") or {}),
        )


@dataclass(frozen=True)
class SessionSettings:
    """Scoring-relevant session settings."""
    rounds_enabled: bool = False
    score_direction: str = "higherWins"
    allow_negative: bool = True
    min_players: int | None = None
    max_players: int | None = None

    def __post_init__(self):
        """Validate settings."""
        validate_score_direction(self.score_direction)
        if (
            self.min_players is not None
            and self.max_players is not None
            and self.min_players > self.max_players
        ):
            raise ValueError(
                f"SessionSettings: min_players ({self.min_players}) must be <= "
                f"max_players ({self.max_players})"
            )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "roundsEnabled": self.rounds_enabled,
            "scoreDirection": self.score_direction,
            "allowNegative": self.allow_negative,
        }
        if self.min_players is not None:
            result["minPlayers"] = self.min_players
        if self.max_players is not None:
            result["maxPlayers"] = self.max_players
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "SessionSettings":
        return cls(
            rounds_enabled=bool(d.get("roundsEnabled", False)),
            score_direction=d.get("scoreDirection", "higherWins"),
            allow_negative=bool(d.get("allowNegative", True)),
            min_players=d.get("minPlayers"),
            max_players=d.get("maxPlayers"),
        )
