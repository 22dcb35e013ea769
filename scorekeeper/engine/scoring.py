"""
ScoringEngine: one evaluation pass over a snapshot.

Stages, in fixed order:
    1. Category totals for every player
    2. Object/variable evaluation against the stage-1 totals
    3. Rule evaluation against the stage-1 totals

Nothing produced in stages 2-3 feeds back into stage 1 within the same
call: score-impact and rule entries show up in totals on the next call,
after the caller merges the result (`ScoringSnapshot.merged`).

With `settle_passes > 1`, stages 1-2 are repeated with updated instances
merged in until no instance changes (at most settle_passes times).
Entries are still emitted once, from the final pass.

Usage:
    engine = ScoringEngine()
    result = engine.evaluate(snapshot)
    snapshot = snapshot.merged(result)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..config import EngineConfig, get_config
from ..formula.evaluation.core import FormulaEvaluator
from ..models.definitions import Instance
from ..models.entries import ScoreEntry
from ..models.snapshot import ScoringSnapshot
from ..utils.helpers import new_id, now_ms
from ..utils.logger import get_logger
from .categories import compute_category_totals, compute_player_total, find_winners
from .objects import ObjectEvaluator
from .resolver import ReferenceResolver
from .rules import RuleEngine


@dataclass(frozen=True)
class EvaluationResult:
    """
    Outputs of one engine call, for the caller to merge.

    Attributes:
        category_totals: player id -> category id -> final total
        player_totals: player id -> total
        updated_instances: Instances whose derived fields changed
        new_entries: Score-impact entries first, then rule entries
        round_id: Round the evaluation ran in
        score_direction: Session score direction (default for winners())
        passes: Evaluation passes actually run
    """
    category_totals: Dict[str, Dict[str, float]] = field(default_factory=dict)
    player_totals: Dict[str, float] = field(default_factory=dict)
    updated_instances: Tuple[Instance, ...] = ()
    new_entries: Tuple[ScoreEntry, ...] = ()
    round_id: Optional[str] = None
    score_direction: str = "higherWins"
    passes: int = 1

    def winners(self, direction: Optional[str] = None) -> List[str]:
        """Winning player ids for `direction` (default: the session's)."""
        return find_winners(self.player_totals, direction or self.score_direction)

    def to_dict(self) -> dict:
        return {
            "categoryTotals": {p: dict(t) for p, t in self.category_totals.items()},
            "playerTotals": dict(self.player_totals),
            "updatedInstances": [i.to_dict() for i in self.updated_instances],
            "newEntries": [e.to_dict() for e in self.new_entries],
            "roundId": self.round_id,
        }


class ScoringEngine:
    """
    Pure, synchronous scoring engine.

    Never mutates its inputs; every call returns a new EvaluationResult.

    Attributes:
        config: Engine configuration
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        evaluator: Optional[FormulaEvaluator] = None,
        id_factory: Callable[[], str] = new_id,
    ):
        self.config = config or get_config().engine
        self.evaluator = evaluator or FormulaEvaluator(max_depth=self.config.max_formula_depth)
        self.id_factory = id_factory
        self.rule_engine = RuleEngine(epsilon=self.config.rule_epsilon, id_factory=id_factory)
        self.logger = get_logger()

    def _objects(self, snapshot: ScoringSnapshot, round_id: Optional[str]) -> ObjectEvaluator:
        return ObjectEvaluator(
            snapshot,
            round_id,
            evaluator=self.evaluator,
            score_impact_epsilon=self.config.score_impact_epsilon,
            id_factory=self.id_factory,
            warn_unknown_references=self.config.warn_unknown_references,
        )

    def category_totals(
        self,
        snapshot: ScoringSnapshot,
        round_id: Optional[str] = None,
        resolver: Optional[ReferenceResolver] = None,
    ) -> Dict[str, Dict[str, float]]:
        """Stage 1 for every player."""
        if resolver is None:
            resolver = self._objects(snapshot, round_id).resolver
        return {
            player_id: compute_category_totals(
                snapshot.entries,
                snapshot.categories,
                player_id,
                round_id,
                resolver=resolver,
                evaluator=self.evaluator,
            )
            for player_id in snapshot.player_ids
        }

    def evaluate(
        self,
        snapshot: ScoringSnapshot,
        round_id: Optional[str] = None,
        now: Optional[int] = None,
    ) -> EvaluationResult:
        """
        Run one evaluation.

        Args:
            snapshot: Immutable input tables
            round_id: Current round (default: the snapshot's current round)
            now: Timestamp for computed values and new entries (default: now)
        """
        now = now if now is not None else now_ms()
        current = snapshot.round(round_id) if round_id is not None else snapshot.current_round
        round_id = current.id if current is not None else None

        working = snapshot
        changed: Dict[str, Instance] = {}
        passes = 0
        while True:
            passes += 1
            objects = self._objects(working, round_id)
            totals = self.category_totals(working, round_id, objects.resolver)
            object_result = objects.evaluate_all(totals, now)
            for instance in object_result.updated_instances:
                changed[instance.id] = instance
            if passes >= self.config.settle_passes or not object_result.updated_instances:
                break
            working = working.with_instances(object_result.updated_instances)

        rule_entries: List[ScoreEntry] = []
        for player_id in working.player_ids:
            rule_entries.extend(self.rule_engine.evaluate(
                working.rules,
                totals[player_id],
                player_id,
                round_id,
                working.entries,
                objects.resolver,
                now,
            ))

        player_totals = {pid: compute_player_total(t) for pid, t in totals.items()}
        result = EvaluationResult(
            category_totals=totals,
            player_totals=player_totals,
            updated_instances=tuple(changed.values()),
            new_entries=tuple(object_result.entries) + tuple(rule_entries),
            round_id=round_id,
            score_direction=snapshot.settings.score_direction,
            passes=passes,
        )
        self.logger.debug(
            f"[ENGINE] players={len(player_totals)} | round={round_id} | passes={passes} | "
            f"updated_instances={len(result.updated_instances)} | new_entries={len(result.new_entries)}"
        )
        return result


def evaluate_snapshot(
    snapshot: ScoringSnapshot,
    round_id: Optional[str] = None,
    now: Optional[int] = None,
) -> EvaluationResult:
    """Evaluate with a default-configured engine."""
    return ScoringEngine().evaluate(snapshot, round_id, now)
