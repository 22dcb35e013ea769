"""
Category records.

Categories form a forest via parent links. The authoring side keeps the
links acyclic; traversals in the engine still guard against cycles.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..utils.helpers import safe_float


class DisplayType(str, Enum):
    """How a category's final total is produced."""
    SUM = "sum"
    WEIGHTED = "weighted"
    FORMULA = "formula"


@dataclass(frozen=True)
class Category:
    """
    A named scoring bucket.

    Attributes:
        id: Category id (entries reference it via categoryId)
        name: Display name, also the case-insensitive formula reference
        parent_id: Parent category id, if nested. Links are not checked
            here; roll_up cuts cycles, including a category naming itself
        sort_order: Display/evaluation order among siblings
        display_type: sum | weighted | formula
        weight: Multiplier for weighted categories (1.0 when unset/invalid)
        formula: Formula text for formula categories, kept verbatim
    """
    id: str
    name: str
    parent_id: str | None = None
    sort_order: int = 0
    display_type: DisplayType = DisplayType.SUM
    weight: float | None = None
    formula: str | None = None

    def __post_init__(self):
        """Validate category."""
        if not self.id:
            raise ValueError("Category: id is required")

    @property
    def effective_weight(self) -> float:
        """Weight to apply, defaulting to 1.0 when unset, zero or invalid."""
        if self.weight is None:
            return 1.0
        weight = safe_float(self.weight, default=1.0)
        # A zero weight has always meant "not configured" in saved templates
        return weight if weight != 0 else 1.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict in template (categoryTemplates) format."""
        result: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "sortOrder": self.sort_order,
            "displayType": self.display_type.value,
        }
        if self.parent_id is not None:
            result["parentId"] = self.parent_id
        if self.weight is not None:
            result["defaultWeight"] = self.weight
        if self.formula is not None:
            result["defaultFormula"] = self.formula
        return result

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Category":
        """
        Create from dict.

        Accepts both the template shape (parentId, defaultWeight,
        defaultFormula) and the session shape (parentCategoryId, weight,
        formula).
        """
        weight = d.get("defaultWeight", d.get("weight"))
        return cls(
            id=d["id"],
            name=d.get("name", ""),
            parent_id=d.get("parentId", d.get("parentCategoryId")),
            sort_order=int(d.get("sortOrder", 0) or 0),
            display_type=DisplayType(d.get("displayType", DisplayType.SUM.value)),
            weight=weight,
            formula=d.get("defaultFormula", d.get("formula")),
        )
