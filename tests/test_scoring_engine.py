"""
Tests for ScoringEngine orchestration.

Validates that:
1. Stages run in fixed order: totals, objects, rules
2. Score-impact and rule entries lag one evaluation behind totals
3. settle_passes > 1 re-runs totals/objects until instances stop changing
4. Results merge back into a snapshot without mutating inputs
"""

import pytest

from scorekeeper.config import EngineConfig
from scorekeeper.engine import EvaluationResult, ScoringEngine, evaluate_snapshot
from scorekeeper.models import (
    ActionKind,
    ComparisonOp,
    ConditionScope,
    RuleAction,
    RuleCondition,
    ScoringRule,
    SessionSettings,
)
from tests.fixtures import (
    NOW,
    SequentialIds,
    category,
    definition,
    entries,
    formula_category,
    instance,
    rounds_snapshot,
    snapshot,
    territory_snapshot,
)


def make_engine(**config) -> ScoringEngine:
    return ScoringEngine(EngineConfig(**config), id_factory=SequentialIds())


def bonus_rule(name="Bonus", operator=">=", threshold=0, kind=ActionKind.ADD, amount=1) -> ScoringRule:
    return ScoringRule(
        id=f"rule-{name.lower()}",
        name=name,
        condition=RuleCondition(ConditionScope.TOTAL, ComparisonOp(operator), threshold),
        action=RuleAction(kind, amount),
    )


@pytest.fixture
def fleet_world():
    """Ships = Territories * 2; Fleet category = Ships + 1."""
    return snapshot(
        player_ids=("p1",),
        categories=[
            category("territories", "Territories"),
            formula_category("fleet", "{Ships} + 1", "Fleet", sort=1),
        ],
        definitions=[definition("d-ships", "Ships", calculation="{Territories} * 2")],
        instances=[instance("d-ships", "p1", 0)],
        entries=entries("p1", "territories", [5]),
    )


class TestEvaluate:
    """Single evaluation."""

    def test_territory_scenario(self):
        result = make_engine().evaluate(territory_snapshot(), now=NOW)
        assert result.category_totals == {
            "p1": {"territories": 5.0, "area": 10.0, "bonus": 1.0, "vp": 11.0}
        }
        assert result.player_totals == {"p1": 27.0}
        assert result.new_entries == ()
        assert result.passes == 1

    def test_every_player_gets_totals(self):
        world = snapshot(categories=[category("a")], entries=entries("p1", "a", [2]))
        result = make_engine().evaluate(world, now=NOW)
        assert result.category_totals == {"p1": {"a": 2.0}, "p2": {}}
        assert result.player_totals == {"p1": 2.0, "p2": 0.0}

    def test_inputs_are_not_mutated(self, fleet_world):
        before = (fleet_world.instances, fleet_world.entries)
        make_engine().evaluate(fleet_world, now=NOW)
        assert (fleet_world.instances, fleet_world.entries) == before

    def test_impact_entries_come_before_rule_entries(self):
        world = snapshot(
            definitions=[definition("d-castle", "Castle", score_impact="5")],
            instances=[instance("d-castle", "p1", 1)],
            rules=[bonus_rule()],
        )
        result = make_engine().evaluate(world, now=NOW)
        assert [(e.id, e.player_id, e.note) for e in result.new_entries] == [
            ("id-1", "p1", "Auto: Castle score impact"),
            ("id-2", "p1", "Auto: Bonus"),
            ("id-3", "p2", "Auto: Bonus"),
        ]

    def test_round_defaults_to_current(self):
        world = rounds_snapshot(
            categories=[formula_category("r", "round() * 10")],
            player_ids=("p1",),
        )
        assert make_engine().evaluate(world, now=NOW).round_id == "r2"
        result = make_engine().evaluate(world, "r1", now=NOW)
        assert result.round_id == "r1"
        assert result.category_totals["p1"]["r"] == 10.0

    def test_rule_entries_carry_round(self):
        world = rounds_snapshot(player_ids=("p1",), rules=[bonus_rule()])
        [produced] = make_engine().evaluate(world, now=NOW).new_entries
        assert produced.round_id == "r2"

    def test_disabled_unknown_reference_warnings(self, log_messages):
        world = snapshot(categories=[formula_category("f", "{Nope} + 1")])
        make_engine(warn_unknown_references=False).evaluate(world, now=NOW)
        assert log_messages.matching("UnknownReferenceWarning") == []
        make_engine().evaluate(world, now=NOW)
        assert log_messages.matching("UnknownReferenceWarning")


class TestOneCycleLag:
    """Default behavior: outputs land in totals on the next call."""

    def test_score_impact_shows_up_after_merge(self):
        world = snapshot(
            player_ids=("p1",),
            definitions=[definition("d-castle", "Castle", score_impact="5")],
            instances=[instance("d-castle", "p1", 1)],
        )
        engine = make_engine()
        first = engine.evaluate(world, now=NOW)
        assert first.player_totals == {"p1": 0.0}
        assert [e.value for e in first.new_entries] == [5.0]

        second = engine.evaluate(world.merged(first), now=NOW)
        assert second.player_totals == {"p1": 5.0}
        assert second.category_totals["p1"] == {"uncategorized": 5.0}

    def test_computed_value_reaches_formula_next_call(self, fleet_world):
        engine = make_engine()
        first = engine.evaluate(fleet_world, now=NOW)
        assert first.category_totals["p1"]["fleet"] == 1.0
        [ships] = first.updated_instances
        assert ships.computed_value == 10.0

        second = engine.evaluate(fleet_world.merged(first), now=NOW)
        assert second.category_totals["p1"]["fleet"] == 11.0
        assert second.updated_instances == ()

    def test_cap_rule_settles_after_merge(self):
        world = snapshot(
            player_ids=("p1",),
            categories=[category("a")],
            entries=entries("p1", "a", [40, 23]),
            rules=[bonus_rule("Cap", ">=", 50, ActionKind.SET, 50)],
        )
        engine = make_engine()
        first = engine.evaluate(world, now=NOW)
        assert first.player_totals == {"p1": 63.0}
        assert [e.value for e in first.new_entries] == [-13.0]

        merged = world.merged(first)
        second = engine.evaluate(merged, now=NOW)
        assert second.player_totals == {"p1": 50.0}
        assert second.new_entries == ()


class TestSettlePasses:
    """Bounded fixed-point iteration of totals and objects."""

    def test_settles_within_one_call(self, fleet_world):
        result = make_engine(settle_passes=3).evaluate(fleet_world, now=NOW)
        assert result.category_totals["p1"]["fleet"] == 11.0
        assert result.passes == 2
        [ships] = result.updated_instances
        assert ships.computed_value == 10.0

    def test_passes_are_bounded(self):
        """A chain of dependent calculations needs one pass per link."""
        world = snapshot(
            player_ids=("p1",),
            definitions=[
                definition("d-a", "A", calculation="{B} + 1"),
                definition("d-b", "B", calculation="{C} + 1"),
                definition("d-c", "C", calculation="5"),
            ],
            instances=[instance("d-a", "p1", 0), instance("d-b", "p1", 0), instance("d-c", "p1", 0)],
        )
        result = make_engine(settle_passes=2).evaluate(world, now=NOW)
        assert result.passes == 2

    def test_settle_passes_from_environment(self, fleet_world, monkeypatch):
        monkeypatch.setenv("SCOREKEEPER_SETTLE_PASSES", "4")
        result = ScoringEngine().evaluate(fleet_world, now=NOW)
        assert result.category_totals["p1"]["fleet"] == 11.0

    def test_entries_emitted_once(self):
        world = snapshot(
            player_ids=("p1",),
            definitions=[definition("d-castle", "Castle", calculation="2", score_impact="5")],
            instances=[instance("d-castle", "p1", 1)],
        )
        result = make_engine(settle_passes=5).evaluate(world, now=NOW)
        assert len(result.new_entries) == 1


class TestResult:
    """EvaluationResult helpers."""

    def test_winners_follow_session_direction(self):
        world = snapshot(
            categories=[category("a")],
            entries=entries("p1", "a", [3]) + entries("p2", "a", [7]),
            settings=SessionSettings(score_direction="lowerWins"),
        )
        result = make_engine().evaluate(world, now=NOW)
        assert result.winners() == ["p1"]
        assert result.winners("higherWins") == ["p2"]

    def test_to_dict(self, fleet_world):
        data = make_engine().evaluate(fleet_world, now=NOW).to_dict()
        assert data["categoryTotals"] == {"p1": {"territories": 5.0, "fleet": 1.0}}
        assert data["playerTotals"] == {"p1": 6.0}
        assert data["updatedInstances"][0]["computedValue"] == 10.0
        assert data["newEntries"] == []
        assert data["roundId"] is None

    def test_empty_result(self):
        assert EvaluationResult().winners() == []

    def test_evaluate_snapshot_helper(self):
        result = evaluate_snapshot(territory_snapshot(), now=NOW)
        assert result.player_totals == {"p1": 27.0}
