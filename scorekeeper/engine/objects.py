"""
Object/Variable Evaluation Context.

For every instance (global instances first, then each player's in seat
order):

    1. Ownership     inactive | global | <player id>; REFERS_TO inherits the
                     owner of the referenced definition's instance when that
                     instance is active or owned
    2. Active window always | round (by id, by index, or any round when
                     rounds are enabled) | phase (phase mechanic enabled) |
                     REFERS_TO (referenced instance active or owned)
    3. State         explicit stored state wins; otherwise derived
    4. Computed value from `calculation`, when live and in window
    5. Score impact  from `scoreImpact`, player instances only; emits a new
                     ScoreEntry when |value| > epsilon

Evaluation reads the snapshot as given: score-impact entries only affect
category totals on the next pass. Failures at steps 4-5 are logged and the
prior computed value is kept.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ..config import get_config
from ..config.constants import (
    LIVE_STATES,
    OWNER_GLOBAL,
    OWNER_INACTIVE,
    STATE_ACTIVE,
    STATE_INACTIVE,
    STATE_OWNED,
)
from ..formula.errors import EvaluationError
from ..formula.evaluation.context import EvaluationContext
from ..formula.evaluation.core import FormulaEvaluator, get_evaluator
from ..models.definitions import Definition, Instance, OwnershipKind, WindowKind
from ..models.entries import EntrySource, ScoreEntry
from ..models.session import Round
from ..models.snapshot import ScoringSnapshot
from ..utils.helpers import new_id, now_ms
from ..utils.logger import get_logger
from .resolver import ReferenceResolver


@dataclass(frozen=True)
class ObjectEvaluation:
    """Outputs of one object evaluation pass."""
    updated_instances: Tuple[Instance, ...] = ()
    entries: Tuple[ScoreEntry, ...] = ()


def _same_value(a, b) -> bool:
    if a == b:
        return True
    return (
        isinstance(a, float) and isinstance(b, float)
        and math.isnan(a) and math.isnan(b)
    )


class ObjectEvaluator:
    """
    Evaluates ownership, windows, states, computed values and score impacts.

    Attributes:
        snapshot: Tables being evaluated
        current_round: Round the evaluation runs in (None outside rounds)
        resolver: Reference resolver owned by this evaluator; its state
            lookups go through state_for
    """

    def __init__(
        self,
        snapshot: ScoringSnapshot,
        round_id: Optional[str] = None,
        *,
        evaluator: Optional[FormulaEvaluator] = None,
        score_impact_epsilon: Optional[float] = None,
        id_factory: Callable[[], str] = new_id,
        warn_unknown_references: Optional[bool] = None,
    ):
        self.snapshot = snapshot
        self.current_round: Optional[Round] = (
            snapshot.round(round_id) if round_id is not None else snapshot.current_round
        )
        self.evaluator = evaluator or get_evaluator()
        if score_impact_epsilon is None:
            score_impact_epsilon = get_config().engine.score_impact_epsilon
        self.score_impact_epsilon = score_impact_epsilon
        self.id_factory = id_factory
        self.resolver = ReferenceResolver(
            snapshot,
            state_lookup=self.state_for,
            warn_unknown=warn_unknown_references,
        )
        self.logger = get_logger()
        self._state_cache: Dict[Tuple[str, Optional[str]], str] = {}

    # ==================== Ownership & Windows ====================

    def ownership_of(
        self,
        definition: Definition,
        player_id: Optional[str],
        visiting: FrozenSet[str] = frozenset(),
    ) -> Optional[str]:
        """
        Resolve the owner tag for `player_id`'s view of a definition.

        Returns:
            "inactive", "global", a player id, or None (per-player
            definition evaluated without a player)
        """
        kind = definition.ownership.kind
        if kind == OwnershipKind.INACTIVE:
            return OWNER_INACTIVE
        if kind == OwnershipKind.GLOBAL:
            return OWNER_GLOBAL
        if kind == OwnershipKind.PER_PLAYER:
            return player_id

        referenced = self._referenced_instance(definition.ownership.definition_id, player_id, visiting)
        if referenced is None:
            return OWNER_INACTIVE
        ref_definition, ref_instance = referenced
        ref_state = self.derive_state(ref_definition, ref_instance, visiting | {definition.id})
        if ref_state in LIVE_STATES:
            return ref_instance.player_id or OWNER_GLOBAL
        return OWNER_INACTIVE

    def window_active(
        self,
        definition: Definition,
        player_id: Optional[str],
        visiting: FrozenSet[str] = frozenset(),
    ) -> bool:
        """Whether the definition's active window is open now."""
        window = definition.active_window
        current = self.current_round

        if window.kind == WindowKind.ALWAYS:
            return True
        if window.kind == WindowKind.ROUND:
            if window.round_id is not None:
                return current is not None and current.id == window.round_id
            if window.round_index is not None:
                return current is not None and current.index == window.round_index
            return self.snapshot.settings.rounds_enabled and current is not None
        if window.kind == WindowKind.PHASE:
            return self.snapshot.phase_enabled

        referenced = self._referenced_instance(window.definition_id, player_id, visiting)
        if referenced is None:
            return False
        ref_definition, ref_instance = referenced
        return self.derive_state(ref_definition, ref_instance, visiting | {definition.id}) in LIVE_STATES

    def _referenced_instance(
        self,
        definition_id: Optional[str],
        player_id: Optional[str],
        visiting: FrozenSet[str],
    ) -> Optional[Tuple[Definition, Instance]]:
        if definition_id is None or definition_id in visiting:
            return None
        ref_definition = self.snapshot.definition(definition_id)
        if ref_definition is None:
            return None
        ref_instance = self.resolver.find_instance(definition_id, player_id)
        if ref_instance is None:
            return None
        return ref_definition, ref_instance

    # ==================== State ====================

    def derive_state(
        self,
        definition: Definition,
        instance: Instance,
        visiting: FrozenSet[str] = frozenset(),
    ) -> str:
        """
        State of an instance.

        Order: explicit stored state; no value -> inactive; ownership
        inactive -> inactive; window closed -> inactive; global -> active;
        owned by a player -> owned; otherwise active.
        """
        if instance.state:
            return instance.state
        if instance.value is None:
            return STATE_INACTIVE
        if definition.id in visiting:
            # Ownership/window chain loops back to this definition
            return STATE_INACTIVE

        visiting = visiting | {definition.id}
        owner = self.ownership_of(definition, instance.player_id, visiting)
        if owner == OWNER_INACTIVE:
            return STATE_INACTIVE
        if not self.window_active(definition, instance.player_id, visiting):
            return STATE_INACTIVE
        if owner == OWNER_GLOBAL:
            return STATE_ACTIVE
        if owner is not None:
            return STATE_OWNED
        return STATE_ACTIVE

    def state_for(self, definition_id: str, player_id: Optional[str]) -> Optional[str]:
        """Derived state of the exact (definition, player) instance, None if absent."""
        key = (definition_id, player_id)
        if key in self._state_cache:
            return self._state_cache[key]
        instance = self.snapshot.instance_for(definition_id, player_id)
        if instance is None:
            return None
        definition = self.snapshot.definition(definition_id)
        if definition is None:
            state = instance.current_state or STATE_INACTIVE
        else:
            state = self.derive_state(definition, instance)
        self._state_cache[key] = state
        return state

    # ==================== Evaluation ====================

    def _context(self, player_id: Optional[str], totals_by_player: Mapping[str, Mapping[str, float]]) -> EvaluationContext:
        totals = totals_by_player.get(player_id, {}) if player_id is not None else {}
        return EvaluationContext(
            totals=totals,
            player_id=player_id,
            round_index=self.current_round.index if self.current_round else 0,
            phase_active=self.snapshot.phase_enabled,
            resolver=self.resolver,
        )

    def evaluate_instance(
        self,
        instance: Instance,
        totals_by_player: Mapping[str, Mapping[str, float]],
        now: Optional[int] = None,
    ) -> Tuple[Optional[Instance], List[ScoreEntry]]:
        """
        Evaluate one instance.

        Returns:
            (updated instance or None when unchanged, new score entries)
        """
        definition = self.snapshot.definition(instance.definition_id)
        if definition is None:
            return None, []
        now = now if now is not None else now_ms()

        state = self.state_for(instance.definition_id, instance.player_id) or STATE_INACTIVE
        in_window = self.window_active(definition, instance.player_id)
        live = state in LIVE_STATES and in_window

        updated = instance
        if instance.derived_state != state:
            updated = replace(updated, derived_state=state)

        context = self._context(instance.player_id, totals_by_player)
        entries: List[ScoreEntry] = []

        if definition.calculation and live:
            try:
                value = self.evaluator.evaluate(definition.calculation, context)
            except EvaluationError as e:
                self.logger.formula_failure(
                    "CALCULATION",
                    definition.name,
                    definition.calculation,
                    e,
                    player=instance.player_id,
                    kept=instance.computed_value,
                )
            else:
                if not _same_value(value, updated.computed_value):
                    updated = replace(updated, computed_value=value, last_computed_at=now)

        if definition.score_impact and live and instance.player_id is not None:
            entry = self._score_impact(definition, instance.player_id, context, now)
            if entry is not None:
                entries.append(entry)

        return (updated if updated is not instance else None), entries

    def _score_impact(
        self,
        definition: Definition,
        player_id: str,
        context: EvaluationContext,
        now: int,
    ) -> Optional[ScoreEntry]:
        try:
            impact = self.evaluator.evaluate(definition.score_impact, context)
        except EvaluationError as e:
            self.logger.formula_failure(
                "SCORE_IMPACT", definition.name, definition.score_impact, e, player=player_id
            )
            return None

        if not math.isfinite(impact):
            self.logger.warning(
                f"[SCORE_IMPACT] {definition.name} | player={player_id} | "
                f"non-finite value {impact} ignored"
            )
            return None
        if abs(impact) <= self.score_impact_epsilon:
            return None

        self.logger.score_impact(definition.name, player_id, impact)
        return ScoreEntry(
            id=self.id_factory(),
            player_id=player_id,
            value=impact,
            created_at=now,
            round_id=self.current_round.id if self.current_round else None,
            source=EntrySource.RULE_ENGINE,
            note=f"Auto: {definition.name} score impact",
        )

    def evaluation_order(self) -> List[Instance]:
        """Global instances first, then each player's instances in seat order."""
        ordered = [i for i in self.snapshot.instances if i.player_id is None]
        for player_id in self.snapshot.player_ids:
            ordered.extend(i for i in self.snapshot.instances if i.player_id == player_id)
        return ordered

    def evaluate_all(
        self,
        totals_by_player: Mapping[str, Mapping[str, float]],
        now: Optional[int] = None,
    ) -> ObjectEvaluation:
        """Evaluate every instance once."""
        now = now if now is not None else now_ms()
        updated: List[Instance] = []
        entries: List[ScoreEntry] = []
        for instance in self.evaluation_order():
            new_instance, new_entries = self.evaluate_instance(instance, totals_by_player, now)
            if new_instance is not None:
                updated.append(new_instance)
            entries.extend(new_entries)
        return ObjectEvaluation(updated_instances=tuple(updated), entries=tuple(entries))


def evaluate_objects(
    snapshot: ScoringSnapshot,
    totals_by_player: Mapping[str, Mapping[str, float]],
    round_id: Optional[str] = None,
    now: Optional[int] = None,
    **kwargs,
) -> ObjectEvaluation:
    """Evaluate every instance in a snapshot against the given category totals."""
    return ObjectEvaluator(snapshot, round_id, **kwargs).evaluate_all(totals_by_player, now)
