"""
Scoring engine.

- resolver.py: Reference Resolver
- categories.py: Category Total Pipeline
- objects.py: Object/Variable Evaluation Context
- rules.py: Rule Engine
- values.py: Instance write boundary
- scoring.py: ScoringEngine orchestration
"""

from .resolver import ReferenceResolver, instance_formula_value
from .categories import (
    apply_formulas,
    apply_weights,
    bucket_entries,
    compute_category_totals,
    compute_player_total,
    find_winners,
    roll_up,
)
from .objects import ObjectEvaluation, ObjectEvaluator, evaluate_objects
from .rules import RuleEngine, RulePreview, condition_value, evaluate_rules, preview_rule
from .values import (
    adjust_set_count,
    check_instance_value,
    default_value_for,
    increment_instance,
    materialize_instances,
    reset_instance,
    set_element_quantity,
    set_instance_value,
    validate_instance_value,
)
from .scoring import EvaluationResult, ScoringEngine, evaluate_snapshot

__all__ = [
    # Resolver
    "ReferenceResolver",
    "instance_formula_value",
    # Categories
    "apply_formulas",
    "apply_weights",
    "bucket_entries",
    "compute_category_totals",
    "compute_player_total",
    "find_winners",
    "roll_up",
    # Objects
    "ObjectEvaluation",
    "ObjectEvaluator",
    "evaluate_objects",
    # Rules
    "RuleEngine",
    "RulePreview",
    "condition_value",
    "evaluate_rules",
    "preview_rule",
    # Values
    "adjust_set_count",
    "check_instance_value",
    "default_value_for",
    "increment_instance",
    "materialize_instances",
    "reset_instance",
    "set_element_quantity",
    "set_instance_value",
    "validate_instance_value",
    # Orchestration
    "EvaluationResult",
    "ScoringEngine",
    "evaluate_snapshot",
]
