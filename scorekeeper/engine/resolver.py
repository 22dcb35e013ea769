"""
Reference Resolver: maps `{name}` references to values.

Resolution order:
    1. Category whose name matches (case-insensitive)
    2. Definition whose name matches (case-insensitive)
    3. Category id, or any key present in the in-progress totals
       (e.g. the uncategorized bucket)
    4. Definition id
    5. Built-in `total`: the in-progress grand total

Anything else resolves to 0 and is logged as an UnknownReferenceWarning,
so renamed or removed categories never break saved formulas.

Definition values come from the current player's instance, falling back to
the global instance. An instance's computed value wins over its stored
value; sets coerce through the FormulaValue table (identical sets to their
count, elements sets to their total quantity).
"""

from __future__ import annotations

from typing import Callable, Optional

from ..config import get_config
from ..config.constants import LIVE_STATES, STATE_INACTIVE, TOTAL_REFERENCE
from ..formula.evaluation.context import EvaluationContext
from ..formula.types import FormulaValue
from ..models.definitions import Definition, DefinitionType, Instance, SetType
from ..models.snapshot import ScoringSnapshot
from ..utils.logger import get_logger


# (definition_id, player_id) -> state of that exact instance, None if no instance
StateLookup = Callable[[str, Optional[str]], Optional[str]]


def instance_formula_value(definition: Optional[Definition], instance: Instance) -> FormulaValue:
    """Tag an instance's effective value for formula use."""
    value = instance.effective_value
    if definition is not None and definition.type == DefinitionType.SET:
        if definition.set_type == SetType.IDENTICAL:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return FormulaValue.set_count(value)
            return FormulaValue.set_count(0)
        if isinstance(value, (list, tuple)):
            return FormulaValue.set_elements(value)
        return FormulaValue.set_elements(())
    return FormulaValue.from_python(value)


class ReferenceResolver:
    """
    Resolves references against a snapshot.

    Attributes:
        snapshot: Tables to resolve against
        state_lookup: Derives an instance's state (supplied by the object
            evaluation context); defaults to the instance's stored state
        warn_unknown: Log unresolved references
    """

    def __init__(
        self,
        snapshot: ScoringSnapshot,
        state_lookup: Optional[StateLookup] = None,
        warn_unknown: Optional[bool] = None,
    ):
        self.snapshot = snapshot
        self.state_lookup = state_lookup
        if warn_unknown is None:
            warn_unknown = get_config().engine.warn_unknown_references
        self.warn_unknown = warn_unknown
        self.logger = get_logger()

    # ==================== Values ====================

    def resolve(self, name: str, context: EvaluationContext) -> FormulaValue:
        """Resolve a reference for context.player_id."""
        snapshot = self.snapshot

        category = snapshot.category_by_name(name)
        if category is not None:
            return FormulaValue.number(context.category_total(category.id))

        definition = snapshot.definition_by_name(name)
        if definition is not None:
            return self.definition_value(definition, context.player_id)

        if snapshot.category(name) is not None or name in context.totals:
            return FormulaValue.number(context.category_total(name))

        definition = snapshot.definition(name)
        if definition is not None:
            return self.definition_value(definition, context.player_id)

        if name.lower() == TOTAL_REFERENCE:
            return FormulaValue.number(context.grand_total())

        if self.warn_unknown:
            self.logger.unknown_reference(name, player=context.player_id)
        return FormulaValue.number(0.0)

    def find_instance(self, definition_id: str, player_id: Optional[str]) -> Optional[Instance]:
        """The player's instance, falling back to the global instance."""
        instance = None
        if player_id is not None:
            instance = self.snapshot.instance_for(definition_id, player_id)
        if instance is None:
            instance = self.snapshot.instance_for(definition_id, None)
        return instance

    def definition_value(self, definition: Definition, player_id: Optional[str]) -> FormulaValue:
        instance = self.find_instance(definition.id, player_id)
        if instance is None:
            return FormulaValue.number(0.0)
        return instance_formula_value(definition, instance)

    def numeric_value(self, name_or_id: str, player_id: Optional[str]) -> Optional[float]:
        """
        Numeric value of a definition instance, or None.

        Used by rule conditions that name a definition instead of a
        category. Only plain numbers count; text, booleans and sets do not.
        """
        definition = self.snapshot.find_definition(name_or_id)
        if definition is None:
            return None
        instance = self.find_instance(definition.id, player_id)
        if instance is None:
            return None
        value = instance.effective_value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return float(value)

    # ==================== States ====================

    def _exact_state(self, definition_id: str, player_id: Optional[str]) -> Optional[str]:
        if self.state_lookup is not None:
            return self.state_lookup(definition_id, player_id)
        instance = self.snapshot.instance_for(definition_id, player_id)
        if instance is None:
            return None
        return instance.current_state or STATE_INACTIVE

    def state_of(self, name: str, player_id: Optional[str]) -> str:
        """State tag of a referenced definition (player's instance, then global)."""
        definition = self.snapshot.find_definition(name)
        if definition is None:
            return STATE_INACTIVE
        state = None
        if player_id is not None:
            state = self._exact_state(definition.id, player_id)
        if state is None:
            state = self._exact_state(definition.id, None)
        return state or STATE_INACTIVE

    def owns(self, name: str, player_id: Optional[str]) -> bool:
        """True if the player's own instance of the definition is active or owned."""
        if player_id is None:
            return False
        definition = self.snapshot.find_definition(name)
        if definition is None:
            return False
        return self._exact_state(definition.id, player_id) in LIVE_STATES
