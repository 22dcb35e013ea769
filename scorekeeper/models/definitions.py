"""
Object/variable definitions and their instances.

Contains:
- DefinitionType, SetType: Enums for definition value types
- Ownership, ActiveWindow: Sum types decoded from the persisted
  "string-or-object" shapes
- SetElementValue: One element line of a distinct-element set
- Definition: Authored schema for an object/variable slot
- Instance: A concrete value of a Definition, global or per player

Persisted shapes:
```
ownership:    "inactive" | "player" | "global" | {"type": "object", "objectId": id}
activeWindow: "always"
              | {"type": "round", "roundId"?: id, "roundIndex"?: n}
              | {"type": "phase", "phaseId"?: id}
              | {"type": "object", "objectId": id}
```
The legacy {"type": "variable", "variableId": id} form of both is accepted.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class DefinitionType(str, Enum):
    """Value type of a definition."""
    NUMBER = "number"
    BOOLEAN = "boolean"
    STRING = "string"
    RESOURCE = "resource"
    TERRITORY = "territory"
    CARD = "card"
    CUSTOM = "custom"
    SET = "set"

    @property
    def is_numeric(self) -> bool:
        """Types stored as plain numbers."""
        return self in (
            DefinitionType.NUMBER,
            DefinitionType.RESOURCE,
            DefinitionType.TERRITORY,
            DefinitionType.CARD,
        )


class SetType(str, Enum):
    """Set flavor."""
    IDENTICAL = "identical"  # value is a non-negative count
    ELEMENTS = "elements"    # value is a list of SetElementValue


# =============================================================================
# Ownership
# =============================================================================

class OwnershipKind(str, Enum):
    """Who may own instances of a definition."""
    INACTIVE = "inactive"
    GLOBAL = "global"
    PER_PLAYER = "player"
    REFERS_TO = "object"


@dataclass(frozen=True)
class Ownership:
    """
    Ownership rule.

    Attributes:
        kind: Ownership kind
        definition_id: Referenced definition (REFERS_TO only)
    """
    kind: OwnershipKind
    definition_id: str | None = None

    def __post_init__(self):
        """Validate ownership."""
        if self.kind == OwnershipKind.REFERS_TO and not self.definition_id:
            raise ValueError("Ownership: definition_id is required for REFERS_TO")
        if self.kind != OwnershipKind.REFERS_TO and self.definition_id is not None:
            raise ValueError(
                f"Ownership: definition_id is only valid for REFERS_TO, got kind={self.kind.value}"
            )

    @classmethod
    def refers_to(cls, definition_id: str) -> "Ownership":
        return cls(kind=OwnershipKind.REFERS_TO, definition_id=definition_id)

    @classmethod
    def from_raw(cls, raw: Any) -> "Ownership":
        """
        Decode the persisted ownership shape.

        Raises:
            ValueError: If the shape is not recognized
        """
        if isinstance(raw, str):
            return cls(kind=OwnershipKind(raw))
        if isinstance(raw, dict):
            ref_type = raw.get("type")
            if ref_type == "object":
                return cls.refers_to(raw.get("objectId", ""))
            if ref_type == "variable":
                return cls.refers_to(raw.get("variableId", ""))
        raise ValueError(f"Invalid ownership: {raw!r}")

    def to_raw(self) -> Any:
        """Encode to the persisted shape."""
        if self.kind == OwnershipKind.REFERS_TO:
            return {"type": "object", "objectId": self.definition_id}
        return self.kind.value


# =============================================================================
# Active Window
# =============================================================================

class WindowKind(str, Enum):
    """When instances of a definition are temporally visible."""
    ALWAYS = "always"
    ROUND = "round"
    PHASE = "phase"
    REFERS_TO = "object"


@dataclass(frozen=True)
class ActiveWindow:
    """
    Active-window rule.

    Attributes:
        kind: Window kind
        round_id: Bound round id (ROUND)
        round_index: Bound round index (ROUND, when no round_id)
        phase_id: Bound phase id (PHASE, informational)
        definition_id: Referenced definition (REFERS_TO)

    A ROUND window with neither round_id nor round_index matches any round,
    provided rounds are enabled for the session.
    """
    kind: WindowKind = WindowKind.ALWAYS
    round_id: str | None = None
    round_index: int | None = None
    phase_id: str | None = None
    definition_id: str | None = None

    def __post_init__(self):
        """Validate window."""
        if self.kind == WindowKind.REFERS_TO and not self.definition_id:
            raise ValueError("ActiveWindow: definition_id is required for REFERS_TO")

    @classmethod
    def always(cls) -> "ActiveWindow":
        return cls(kind=WindowKind.ALWAYS)

    @classmethod
    def from_raw(cls, raw: Any) -> "ActiveWindow":
        """
        Decode the persisted active-window shape.

        Raises:
            ValueError: If the shape is not recognized
        """
        if raw is None or raw == "always":
            return cls.always()
        if isinstance(raw, dict):
            window_type = raw.get("type")
            if window_type == "round":
                index = raw.get("roundIndex")
                return cls(
                    kind=WindowKind.ROUND,
                    round_id=raw.get("roundId"),
                    round_index=int(index) if index is not None else None,
                )
            if window_type == "phase":
                return cls(kind=WindowKind.PHASE, phase_id=raw.get("phaseId"))
            if window_type == "object":
                return cls(kind=WindowKind.REFERS_TO, definition_id=raw.get("objectId", ""))
            if window_type == "variable":
                return cls(kind=WindowKind.REFERS_TO, definition_id=raw.get("variableId", ""))
        raise ValueError(f"Invalid active window: {raw!r}")

    def to_raw(self) -> Any:
        """Encode to the persisted shape."""
        if self.kind == WindowKind.ALWAYS:
            return "always"
        if self.kind == WindowKind.ROUND:
            result: dict[str, Any] = {"type": "round"}
            if self.round_id is not None:
                result["roundId"] = self.round_id
            if self.round_index is not None:
                result["roundIndex"] = self.round_index
            return result
        if self.kind == WindowKind.PHASE:
            result = {"type": "phase"}
            if self.phase_id is not None:
                result["phaseId"] = self.phase_id
            return result
        return {"type": "object", "objectId": self.definition_id}


# =============================================================================
# Sets
# =============================================================================

@dataclass(frozen=True)
class SetElementValue:
    """One element line of a distinct-element set."""
    element_definition_id: str
    quantity: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "elementObjectDefinitionId": self.element_definition_id,
            "quantity": self.quantity,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "SetElementValue":
        """Create from dict (accepts the legacy elementVariableDefinitionId key)."""
        element_id = d.get("elementObjectDefinitionId", d.get("elementVariableDefinitionId"))
        return cls(
            element_definition_id=element_id or "",
            quantity=d.get("quantity", 0),
        )


# =============================================================================
# Definition
# =============================================================================

@dataclass(frozen=True)
class Definition:
    """
    Authored schema for an object/variable slot.

    Attributes:
        id: Definition id
        name: Display name, also the case-insensitive formula reference
        type: Value type
        default_value: Initial instance value (type default when None)
        min, max: Numeric bounds enforced at the write boundary
        options: Allowed values for string definitions
        ownership: Which instances exist and who owns them
        active_window: Temporal visibility
        calculation: Formula producing the instance's computed value
        score_impact: Formula producing per-player score entries
        set_type: identical | elements (type=set only)
        set_elements: Element definition ids allowed in an elements set
    """
    id: str
    name: str
    type: DefinitionType = DefinitionType.NUMBER
    default_value: Any = None
    min: float | None = None
    max: float | None = None
    options: tuple[str, ...] = ()
    ownership: Ownership = Ownership(OwnershipKind.PER_PLAYER)
    active_window: ActiveWindow = ActiveWindow()
    calculation: str | None = None
    score_impact: str | None = None
    set_type: SetType | None = None
    set_elements: tuple[str, ...] = ()

    def __post_init__(self):
        """Validate definition."""
        if not self.id:
            raise ValueError("Definition: id is required")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(
                f"Definition '{self.name}': min ({self.min}) must be <= max ({self.max})"
            )

    @staticmethod
    def default_ownership_for(def_type: DefinitionType) -> Ownership:
        """Ownership used when a document leaves it unset."""
        if def_type == DefinitionType.STRING:
            return Ownership(OwnershipKind.GLOBAL)
        return Ownership(OwnershipKind.PER_PLAYER)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict in template (objectDefinitions) format."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "ownership": self.ownership.to_raw(),
            "activeWindow": self.active_window.to_raw(),
        }
        if self.default_value is not None:
            result["defaultValue"] = self.default_value
        if self.min is not None:
            result["min"] = self.min
        if self.max is not None:
            result["max"] = self.max
        if self.options:
            result["options"] = list(self.options)
        if self.calculation is not None:
            result["calculation"] = self.calculation
        if self.score_impact is not None:
            result["scoreImpact"] = self.score_impact
        if self.set_type is not None:
            result["setType"] = self.set_type.value
        if self.set_elements:
            result["setElements"] = list(self.set_elements)
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Definition":
        """Create from dict."""
        def_type = DefinitionType(d.get("type", DefinitionType.NUMBER.value))
        raw_ownership = d.get("ownership")
        ownership = (
            Ownership.from_raw(raw_ownership)
            if raw_ownership is not None
            else cls.default_ownership_for(def_type)
        )
        set_type = d.get("setType")
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            type=def_type,
            default_value=d.get("defaultValue"),
            min=d.get("min"),
            max=d.get("max"),
            options=tuple(d.get("options") or ()),
            ownership=ownership,
            active_window=ActiveWindow.from_raw(d.get("activeWindow")),
            calculation=d.get("calculation") or None,
            score_impact=d.get("scoreImpact") or None,
            set_type=SetType(set_type) if set_type else None,
            set_elements=tuple(d.get("setElements") or ()),
        )


# =============================================================================
# Instance
# =============================================================================

@dataclass(frozen=True)
class Instance:
    """
    A concrete value of a Definition.

    `value` changes only through explicit writes (see engine.values).
    Evaluation only ever produces copies with new `derived_state`,
    `computed_value` and `last_computed_at`.

    `state` holds an explicit stored state tag; when set it wins over
    derivation. Custom tags are allowed. `derived_state` is the last
    evaluated state and is never read back as explicit.
    """
    id: str
    definition_id: str
    player_id: str | None = None
    value: Any = None
    computed_value: Any = None
    state: str | None = None
    last_computed_at: int | None = None
    derived_state: str | None = None

    @property
    def current_state(self) -> str | None:
        """Explicit state when set, otherwise the last evaluated state."""
        return self.state or self.derived_state

    @property
    def is_global(self) -> bool:
        return self.player_id is None

    @property
    def effective_value(self) -> Any:
        """Computed value when present, otherwise the stored value."""
        if self.computed_value is not None:
            return self.computed_value
        return self.value

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for serialization."""
        value = self.value
        if isinstance(value, (list, tuple)):
            value = [
                v.to_dict() if isinstance(v, SetElementValue) else v
                for v in value
            ]
        result: dict[str, Any] = {
            "id": self.id,
            "objectDefinitionId": self.definition_id,
            "value": value,
        }
        if self.player_id is not None:
            result["playerId"] = self.player_id
        if self.computed_value is not None:
            result["computedValue"] = self.computed_value
        if self.state is not None:
            result["state"] = self.state
        if self.last_computed_at is not None:
            result["lastComputedAt"] = self.last_computed_at
        if self.derived_state is not None:
            result["derivedState"] = self.derived_state
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Instance":
        """Create from dict (accepts the legacy variableDefinitionId key)."""
        value = d.get("value")
        if isinstance(value, list):
            value = tuple(
                SetElementValue.from_dict(v) if isinstance(v, dict) else v
                for v in value
            )
        return cls(
            id=d["id"],
            definition_id=d.get("objectDefinitionId", d.get("variableDefinitionId", "")),
            player_id=d.get("playerId"),
            value=value,
            computed_value=d.get("computedValue"),
            state=d.get("state"),
            last_computed_at=d.get("lastComputedAt"),
            derived_state=d.get("derivedState"),
        )
