"""
Category Total Pipeline.

Turns a player's raw entries into final per-category numbers:

    1. Bucket    - sum entry values per category (uncategorized sentinel
                   for entries without one)
    2. Roll up   - every ancestor of a bucketed category gets the sum of its
                   children's totals (post-order). Untouched categories stay
                   absent from the result.
    3. Formulas  - every formula category is evaluated and overwrites its
                   total. A formula that references another formula category
                   evaluates that one first; cycles fail safely. Failures keep
                   the pre-formula value and are logged.
    4. Weights   - weighted categories present in the map are multiplied by
                   their weight (1.0 when unset or invalid).

Formulas run before weights, so they always see unweighted subtotals.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..config.constants import validate_score_direction
from ..formula.errors import CircularReferenceError, EvaluationError
from ..formula.evaluation.context import EvaluationContext
from ..formula.evaluation.core import FormulaEvaluator, get_evaluator
from ..models.categories import Category, DisplayType
from ..models.entries import ScoreEntry
from ..utils.logger import get_logger
from .resolver import ReferenceResolver


# =============================================================================
# Stages
# =============================================================================

def bucket_entries(entries: Iterable[ScoreEntry], player_id: str) -> Dict[str, float]:
    """Sum a player's entry values per category (stage 1)."""
    totals: Dict[str, float] = {}
    for entry in entries:
        if entry.player_id != player_id:
            continue
        totals[entry.bucket] = totals.get(entry.bucket, 0.0) + entry.value
    return totals


def _children_by_parent(categories: Sequence[Category]) -> Dict[str, List[str]]:
    children: Dict[str, List[str]] = {}
    for category in sorted(categories, key=lambda c: c.sort_order):
        if category.parent_id is not None:
            children.setdefault(category.parent_id, []).append(category.id)
    return children


def roll_up(totals: Mapping[str, float], categories: Sequence[Category]) -> Dict[str, float]:
    """
    Parent totals from children (stage 2).

    Only ancestors of categories present in `totals` are populated. A
    parent's total is the sum of its children's totals and replaces any
    entries booked directly on the parent. Parent-link cycles are cut.
    """
    result = dict(totals)
    by_id = {c.id: c for c in categories}
    children = _children_by_parent(categories)
    computed: set[str] = set()

    def _total(category_id: str, visiting: set[str]) -> float:
        if category_id in computed or category_id in visiting:
            return result.get(category_id, 0.0)
        kids = children.get(category_id)
        if not kids:
            computed.add(category_id)
            return result.get(category_id, 0.0)
        visiting.add(category_id)
        total = sum(_total(child, visiting) for child in kids)
        visiting.discard(category_id)
        result[category_id] = total
        computed.add(category_id)
        return total

    for category_id in list(totals):
        seen: set[str] = set()
        category = by_id.get(category_id)
        parent_id = category.parent_id if category else None
        while parent_id is not None and parent_id not in seen:
            seen.add(parent_id)
            _total(parent_id, set())
            parent = by_id.get(parent_id)
            parent_id = parent.parent_id if parent else None

    return result


class _FormulaPass:
    """
    Stage 3 for one player.

    Evaluates formula categories on demand so that a formula referencing
    another formula category sees that category's formula result.
    """

    def __init__(
        self,
        totals: Dict[str, float],
        categories: Sequence[Category],
        evaluator: FormulaEvaluator,
        base_context: EvaluationContext,
    ):
        self.totals = totals
        self.pre_formula = dict(totals)
        self.formula_categories = {
            c.id: c
            for c in sorted(categories, key=lambda c: c.sort_order)
            if c.display_type == DisplayType.FORMULA and c.formula and c.formula.strip()
        }
        self.evaluator = evaluator
        self.context = EvaluationContext(
            totals=totals,
            player_id=base_context.player_id,
            round_index=base_context.round_index,
            phase_active=base_context.phase_active,
            resolver=base_context.resolver,
            category_lookup=self.lookup,
        )
        self.done: set[str] = set()
        self.in_progress: set[str] = set()
        self.logger = get_logger()

    def run(self) -> Dict[str, float]:
        for category_id in self.formula_categories:
            self.evaluate(category_id, self.context)
        return self.totals

    def lookup(self, category_id: str, context: EvaluationContext) -> Optional[float]:
        """Category value for references, evaluating formula categories first."""
        if category_id in self.formula_categories and category_id not in self.done:
            if category_id in self.in_progress:
                name = self.formula_categories[category_id].name
                raise CircularReferenceError(f"Circular formula reference to '{name}'")
            self.evaluate(category_id, context.nested())
        return self.totals.get(category_id, 0.0)

    def evaluate(self, category_id: str, context: EvaluationContext) -> None:
        if category_id in self.done:
            return
        category = self.formula_categories[category_id]
        self.in_progress.add(category_id)
        try:
            value = self.evaluator.evaluate(category.formula, context)
        except EvaluationError as e:
            fallback = self.pre_formula.get(category_id)
            self.logger.formula_failure(
                "CATEGORY",
                category.name,
                category.formula,
                e,
                player=context.player_id,
                fallback=fallback,
            )
            if fallback is None:
                self.totals.pop(category_id, None)
            else:
                self.totals[category_id] = fallback
        else:
            self.totals[category_id] = value
        finally:
            self.in_progress.discard(category_id)
            self.done.add(category_id)


def apply_formulas(
    totals: Mapping[str, float],
    categories: Sequence[Category],
    context: EvaluationContext,
    evaluator: Optional[FormulaEvaluator] = None,
) -> Dict[str, float]:
    """Evaluate every formula category (stage 3)."""
    return _FormulaPass(dict(totals), categories, evaluator or get_evaluator(), context).run()


def apply_weights(totals: Mapping[str, float], categories: Sequence[Category]) -> Dict[str, float]:
    """Multiply weighted categories by their weight (stage 4)."""
    by_id = {c.id: c for c in categories}
    result: Dict[str, float] = {}
    for category_id, total in totals.items():
        category = by_id.get(category_id)
        if category is not None and category.display_type == DisplayType.WEIGHTED:
            total = total * category.effective_weight
        result[category_id] = total
    return result


# =============================================================================
# Pipeline
# =============================================================================

def compute_category_totals(
    entries: Iterable[ScoreEntry],
    categories: Sequence[Category],
    player_id: str,
    round_id: Optional[str] = None,
    *,
    resolver: Optional[ReferenceResolver] = None,
    evaluator: Optional[FormulaEvaluator] = None,
    round_index: Optional[int] = None,
    phase_active: Optional[bool] = None,
) -> Dict[str, float]:
    """
    Compute final category totals for a player.

    Args:
        entries: Score entries (all players; filtered to player_id)
        categories: Category table
        player_id: Player to compute for
        round_id: Current round (formulas see its index via round())
        resolver: Reference resolver (definition values, states). Without
            one, formulas can only reference category ids and `total`.
        evaluator: Formula evaluator (default: shared evaluator)
        round_index: Current round index; looked up from the resolver's
            snapshot when omitted
        phase_active: Phase flag; read from the resolver's snapshot when omitted

    Returns:
        Mapping category id -> final total. Only touched categories and
        formula categories appear.
    """
    categories = list(categories)
    if resolver is not None:
        snapshot = resolver.snapshot
        if round_index is None:
            current = snapshot.round(round_id)
            round_index = current.index if current else 0
        if phase_active is None:
            phase_active = snapshot.phase_enabled

    context = EvaluationContext(
        player_id=player_id,
        round_index=round_index or 0,
        phase_active=bool(phase_active),
        resolver=resolver,
    )

    totals = bucket_entries(entries, player_id)
    totals = roll_up(totals, categories)
    totals = apply_formulas(totals, categories, context, evaluator)
    return apply_weights(totals, categories)


def compute_player_total(category_totals: Mapping[str, float]) -> float:
    """Player total: sum of every category total."""
    return float(sum(category_totals.values()))


def find_winners(player_totals: Mapping[str, float], direction: str = "higherWins") -> List[str]:
    """
    Players holding the best total.

    Args:
        player_totals: Mapping player id -> total
        direction: "higherWins" or "lowerWins"

    Returns:
        Winning player ids (several on a tie, empty when there are no players)
    """
    validate_score_direction(direction)
    if not player_totals:
        return []
    values = player_totals.values()
    target = max(values) if direction == "higherWins" else min(values)
    return [player_id for player_id, total in player_totals.items() if total == target]
