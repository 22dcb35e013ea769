"""
Rule Engine.

Evaluates enabled rules against a player's category totals and emits
corrective score entries. Actions become additive deltas so the ledger
stays auditable:

    add       amount
    multiply  current * (amount - 1)
    set       amount - current

`current` is the target category's total, or the player's grand total when
the action has no target. Deltas smaller than the rule epsilon emit
nothing, which makes a satisfied `set` rule a no-op.

Rules carry no "already fired" memory: an `add` rule whose condition still
holds fires again on the next evaluation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Mapping, Optional

from ..config import get_config
from ..models.entries import EntrySource, ScoreEntry
from ..models.rules import ConditionScope, RuleCondition, ScoringRule
from ..utils.helpers import new_id, now_ms
from ..utils.logger import get_logger
from .resolver import ReferenceResolver


@dataclass(frozen=True)
class RulePreview:
    """Outcome of testing a rule without applying it."""
    would_trigger: bool
    entry: Optional[ScoreEntry] = None


def condition_value(
    condition: RuleCondition,
    totals: Mapping[str, float],
    player_id: str,
    round_id: Optional[str] = None,
    entries: Iterable[ScoreEntry] = (),
    resolver: Optional[ReferenceResolver] = None,
) -> Optional[float]:
    """
    Left-hand side of a rule condition, or None when it cannot be read.

    total:    the player's grand total
    category: the category's total; when the id is not in the totals, the
              numeric value of a definition with that name or id
    round:    number of the player's entries in the condition's round
              (the current round when unset)
    """
    if condition.scope == ConditionScope.TOTAL:
        return float(sum(totals.values()))

    if condition.scope == ConditionScope.CATEGORY:
        if not condition.category_id:
            return None
        if condition.category_id in totals:
            return totals[condition.category_id]
        if resolver is not None:
            return resolver.numeric_value(condition.category_id, player_id)
        return None

    target_round = condition.round_id if condition.round_id is not None else round_id
    return float(sum(
        1 for e in entries
        if e.player_id == player_id and e.round_id == target_round
    ))


class RuleEngine:
    """
    Evaluates scoring rules for one player at a time.

    Attributes:
        epsilon: Tolerance for == / != and minimum emitted delta
    """

    def __init__(
        self,
        epsilon: Optional[float] = None,
        id_factory: Callable[[], str] = new_id,
    ):
        if epsilon is None:
            epsilon = get_config().engine.rule_epsilon
        self.epsilon = epsilon
        self.id_factory = id_factory
        self.logger = get_logger()

    def condition_met(
        self,
        rule: ScoringRule,
        totals: Mapping[str, float],
        player_id: str,
        round_id: Optional[str] = None,
        entries: Iterable[ScoreEntry] = (),
        resolver: Optional[ReferenceResolver] = None,
    ) -> bool:
        lhs = condition_value(rule.condition, totals, player_id, round_id, entries, resolver)
        if lhs is None:
            return False
        return rule.condition.operator.compare(lhs, rule.condition.threshold, self.epsilon)

    def action_entry(
        self,
        rule: ScoringRule,
        totals: Mapping[str, float],
        player_id: str,
        round_id: Optional[str] = None,
        now: Optional[int] = None,
    ) -> Optional[ScoreEntry]:
        """Correction entry for a rule's action, or None when the delta is negligible."""
        action = rule.action
        if action.target_category_id:
            current = totals.get(action.target_category_id, 0.0)
        else:
            current = float(sum(totals.values()))

        delta = action.kind.delta(current, action.amount)
        if abs(delta) < self.epsilon:
            return None

        return ScoreEntry(
            id=self.id_factory(),
            player_id=player_id,
            value=delta,
            created_at=now if now is not None else now_ms(),
            round_id=round_id,
            category_id=action.target_category_id,
            source=EntrySource.RULE_ENGINE,
            note=f"Auto: {rule.name}",
        )

    def evaluate(
        self,
        rules: Iterable[ScoringRule],
        totals: Mapping[str, float],
        player_id: str,
        round_id: Optional[str] = None,
        entries: Iterable[ScoreEntry] = (),
        resolver: Optional[ReferenceResolver] = None,
        now: Optional[int] = None,
    ) -> List[ScoreEntry]:
        """Entries produced by every enabled rule whose condition holds."""
        entries = tuple(entries)
        now = now if now is not None else now_ms()
        produced: List[ScoreEntry] = []

        for rule in rules:
            if not rule.enabled:
                continue
            try:
                met = self.condition_met(rule, totals, player_id, round_id, entries, resolver)
                entry = self.action_entry(rule, totals, player_id, round_id, now) if met else None
            except (ArithmeticError, TypeError, ValueError) as e:
                self.logger.warning(f"[RULE] {rule.name} | player={player_id} | error={e}")
                continue

            self.logger.debug(f"[RULE] {rule.name} | player={player_id} | condition_met={met}")
            if entry is not None:
                self.logger.rule_fired(rule.name, player_id, entry.value)
                produced.append(entry)

        return produced

    def preview(
        self,
        rule: ScoringRule,
        totals: Mapping[str, float],
        player_id: str,
        round_id: Optional[str] = None,
        entries: Iterable[ScoreEntry] = (),
        resolver: Optional[ReferenceResolver] = None,
    ) -> RulePreview:
        """Test a rule (enabled or not) without emitting anything."""
        try:
            met = self.condition_met(rule, totals, player_id, round_id, entries, resolver)
            entry = self.action_entry(rule, totals, player_id, round_id) if met else None
        except (ArithmeticError, TypeError, ValueError) as e:
            self.logger.warning(f"[RULE] {rule.name} | preview failed | error={e}")
            return RulePreview(would_trigger=False)
        return RulePreview(would_trigger=met, entry=entry)


def evaluate_rules(
    rules: Iterable[ScoringRule],
    totals: Mapping[str, float],
    player_id: str,
    round_id: Optional[str] = None,
    entries: Iterable[ScoreEntry] = (),
    resolver: Optional[ReferenceResolver] = None,
    **kwargs,
) -> List[ScoreEntry]:
    """Evaluate rules for a player with a default RuleEngine."""
    return RuleEngine(**kwargs).evaluate(rules, totals, player_id, round_id, entries, resolver)


def preview_rule(
    rule: ScoringRule,
    totals: Mapping[str, float],
    player_id: str,
    round_id: Optional[str] = None,
    entries: Iterable[ScoreEntry] = (),
    resolver: Optional[ReferenceResolver] = None,
    **kwargs,
) -> RulePreview:
    """Preview a rule for a player with a default RuleEngine."""
    return RuleEngine(**kwargs).preview(rule, totals, player_id, round_id, entries, resolver)
