"""
Evaluation context threaded through every formula evaluation.

The context is an immutable parameter: current totals, current player,
current round index, phase flag and lookup functions. Nested evaluations
(a formula category referencing another formula category) get a copy with
depth + 1 instead of sharing mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Mapping, Optional

from ...config.constants import STATE_INACTIVE, TOTAL_REFERENCE
from ..types import FormulaValue
from .protocols import ReferenceResolverProtocol


@dataclass(frozen=True)
class EvaluationContext:
    """
    Inputs visible to one formula evaluation.

    Attributes:
        totals: In-progress category totals for the player (category id -> value)
        player_id: Player the formula is evaluated for (None = global scope)
        round_index: Current round index (0 when there is no current round)
        phase_active: Whether a phase mechanic is enabled
        resolver: Reference resolver; without one, references read `totals`
            directly by key
        category_lookup: Optional hook that supplies a category's value on
            demand (used to evaluate referenced formula categories first)
        depth: Nesting depth of formula-to-formula evaluation
    """
    totals: Mapping[str, float] = field(default_factory=dict)
    player_id: Optional[str] = None
    round_index: int = 0
    phase_active: bool = False
    resolver: Optional[ReferenceResolverProtocol] = None
    category_lookup: Optional[Callable[[str, "EvaluationContext"], Optional[float]]] = None
    depth: int = 0

    def grand_total(self) -> float:
        """Sum of every in-progress category total."""
        return float(sum(self.totals.values()))

    def category_total(self, category_id: str) -> float:
        """Current value of a category (0 when untouched)."""
        if self.category_lookup is not None:
            value = self.category_lookup(category_id, self)
            if value is not None:
                return value
        return float(self.totals.get(category_id, 0.0))

    def resolve(self, name: str) -> FormulaValue:
        """Resolve a `{name}` reference."""
        if self.resolver is not None:
            return self.resolver.resolve(name, self)
        if name not in self.totals and name.lower() == TOTAL_REFERENCE:
            return FormulaValue.number(self.grand_total())
        return FormulaValue.number(self.category_total(name))

    def state_of(self, name: str) -> str:
        """State tag of a referenced object for the current player."""
        if self.resolver is None:
            return STATE_INACTIVE
        return self.resolver.state_of(name, self.player_id)

    def owns(self, name: str, player_id: Optional[str] = None) -> bool:
        """Whether `player_id` (default: current player) owns a referenced object."""
        if self.resolver is None:
            return False
        return self.resolver.owns(name, player_id if player_id is not None else self.player_id)

    def nested(self) -> "EvaluationContext":
        """Copy for a nested formula evaluation."""
        return replace(self, depth=self.depth + 1)
