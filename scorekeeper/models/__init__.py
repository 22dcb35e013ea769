"""
Typed records consumed and produced by the scoring engine.
"""

from .entries import EntrySource, ScoreEntry
from .categories import Category, DisplayType
from .definitions import (
    ActiveWindow,
    Definition,
    DefinitionType,
    Instance,
    Ownership,
    OwnershipKind,
    SetElementValue,
    SetType,
    WindowKind,
)
from .rules import (
    ActionKind,
    ComparisonOp,
    ConditionScope,
    RuleAction,
    RuleCondition,
    ScoringRule,
)
from .session import Mechanic, MechanicType, Round, SessionSettings
from .snapshot import ScoringSnapshot

__all__ = [
    # Entries
    "EntrySource",
    "ScoreEntry",
    # Categories
    "Category",
    "DisplayType",
    # Definitions
    "ActiveWindow",
    "Definition",
    "DefinitionType",
    "Instance",
    "Ownership",
    "OwnershipKind",
    "SetElementValue",
    "SetType",
    "WindowKind",
    # Rules
    "ActionKind",
    "ComparisonOp",
    "ConditionScope",
    "RuleAction",
    "RuleCondition",
    "ScoringRule",
    # Session
    "Mechanic",
    "MechanicType",
    "Round",
    "SessionSettings",
    "ScoringSnapshot",
]
