"""
Conditional scoring rules.

A rule is a pure description: a condition compared against a threshold and
an action expressed as an additive correction entry.

Persisted shape:
```
{
  "id": "...", "name": "...", "enabled": true,
  "condition": {"type": "total|category|round", "operator": ">=",
                "value": 50, "categoryId"?: "...", "roundId"?: "..."},
  "action": {"type": "add|multiply|set", "value": 50,
             "targetCategoryId"?: "..."}
}
```
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict

from ..config.constants import DEFAULT_RULE_EPSILON


class ConditionScope(str, Enum):
    """What a rule condition reads."""
    TOTAL = "total"
    CATEGORY = "category"
    ROUND = "round"


class ComparisonOp(str, Enum):
    """Rule comparison operators."""
    GE = ">="
    LE = "<="
    EQ = "=="
    NE = "!="
    GT = ">"
    LT = "<"

    def compare(self, lhs: float, rhs: float, epsilon: float = DEFAULT_RULE_EPSILON) -> bool:
        """
        Compare lhs against rhs.

        == and != are tolerance comparisons: |lhs - rhs| < epsilon.
        """
        return _COMPARATORS[self](lhs, rhs, epsilon)


_COMPARATORS: Dict[ComparisonOp, Callable[[float, float, float], bool]] = {
    ComparisonOp.GE: lambda a, b, eps: a >= b,
    ComparisonOp.LE: lambda a, b, eps: a <= b,
    ComparisonOp.EQ: lambda a, b, eps: abs(a - b) < eps,
    ComparisonOp.NE: lambda a, b, eps: abs(a - b) >= eps,
    ComparisonOp.GT: lambda a, b, eps: a > b,
    ComparisonOp.LT: lambda a, b, eps: a < b,
}


class ActionKind(str, Enum):
    """Rule action kinds."""
    ADD = "add"
    MULTIPLY = "multiply"
    SET = "set"

    def delta(self, current: float, amount: float) -> float:
        """
        Additive correction that achieves this action on `current`.

        add: amount
        multiply: current * (amount - 1)
        set: amount - current
        """
        if self == ActionKind.ADD:
            return amount
        if self == ActionKind.MULTIPLY:
            return current * amount - current
        return amount - current


@dataclass(frozen=True)
class RuleCondition:
    """
    Rule condition.

    Attributes:
        scope: total | category | round
        operator: Comparison operator
        threshold: Right-hand side of the comparison
        category_id: Category (or definition name/id) read by CATEGORY scope
        round_id: Round whose entries are counted by ROUND scope
    """
    scope: ConditionScope
    operator: ComparisonOp
    threshold: float
    category_id: str | None = None
    round_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.scope.value,
            "operator": self.operator.value,
            "value": self.threshold,
        }
        if self.category_id is not None:
            result["categoryId"] = self.category_id
        if self.round_id is not None:
            result["roundId"] = self.round_id
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "RuleCondition":
        """Create from dict (also accepts scope/threshold keys)."""
        return cls(
            scope=ConditionScope(d.get("type", d.get("scope", ConditionScope.TOTAL.value))),
            operator=ComparisonOp(d.get("operator", ComparisonOp.GE.value)),
            threshold=float(d.get("value", d.get("threshold", 0))),
            category_id=d.get("categoryId"),
            round_id=d.get("roundId"),
        )


@dataclass(frozen=True)
class RuleAction:
    """Rule action: kind, amount and optional target category."""
    kind: ActionKind
    amount: float
    target_category_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.kind.value, "value": self.amount}
        if self.target_category_id is not None:
            result["targetCategoryId"] = self.target_category_id
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "RuleAction":
        return cls(
            kind=ActionKind(d.get("type", d.get("kind", ActionKind.ADD.value))),
            amount=float(d.get("value", d.get("amount", 0))),
            target_category_id=d.get("targetCategoryId"),
        )


@dataclass(frozen=True)
class ScoringRule:
    """A condition/action pair that emits corrective score entries."""
    id: str
    name: str
    condition: RuleCondition
    action: RuleAction
    enabled: bool = True

    def __post_init__(self):
        """Validate rule."""
        if not self.id:
            raise ValueError("ScoringRule: id is required")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "condition": self.condition.to_dict(),
            "action": self.action.to_dict(),
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ScoringRule":
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            condition=RuleCondition.from_dict(d.get("condition") or {}),
            action=RuleAction.from_dict(d.get("action") or {}),
            enabled=bool(d.get("enabled", True)),
        )
