"""
Instance write boundary.

Every change to an instance's stored `value` goes through here and is
validated against its Definition first. Rejected writes raise
ValidationError with a specific message and are never stored.

The engine itself never writes `value`; evaluation only updates derived
fields.
"""

from __future__ import annotations

import math
from dataclasses import replace
from typing import Any, Iterable, List, Optional

from ..formula.errors import ValidationError
from ..models.definitions import (
    Definition,
    DefinitionType,
    Instance,
    OwnershipKind,
    SetElementValue,
    SetType,
)
from ..config.constants import STATE_INACTIVE


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not math.isnan(value)
    )


def default_value_for(definition: Definition) -> Any:
    """Declared default, or the type default."""
    if definition.default_value is not None:
        return definition.default_value
    if definition.type.is_numeric:
        return 0
    if definition.type == DefinitionType.BOOLEAN:
        return False
    if definition.type in (DefinitionType.STRING, DefinitionType.CUSTOM):
        return ""
    if definition.type == DefinitionType.SET:
        return 0 if definition.set_type == SetType.IDENTICAL else ()
    return 0


def _check_bounds(value: float, definition: Definition, label: str = "Value") -> Optional[str]:
    if definition.min is not None and value < definition.min:
        return f"{label} must be at least {definition.min}"
    if definition.max is not None and value > definition.max:
        return f"{label} must be at most {definition.max}"
    return None


def _element_fields(element: Any) -> tuple[Any, Any]:
    if isinstance(element, SetElementValue):
        return element.element_definition_id, element.quantity
    if isinstance(element, dict):
        element_id = element.get("elementObjectDefinitionId", element.get("elementVariableDefinitionId"))
        return element_id, element.get("quantity")
    return None, None


def check_instance_value(value: Any, definition: Definition) -> Optional[str]:
    """
    Validate a value against a definition.

    Returns:
        Error message if invalid, None if valid
    """
    def_type = definition.type

    if def_type.is_numeric:
        if not _is_number(value):
            return "Value must be a number"
        return _check_bounds(value, definition)

    if def_type == DefinitionType.BOOLEAN:
        if not isinstance(value, bool):
            return "Value must be a boolean"
        return None

    if def_type == DefinitionType.STRING:
        if not isinstance(value, str):
            return "Value must be a string"
        if definition.options and value not in definition.options:
            return f"Value must be one of: {', '.join(definition.options)}"
        return None

    if def_type == DefinitionType.SET:
        if definition.set_type is None:
            return "Set object must have a setType defined"
        if definition.set_type == SetType.IDENTICAL:
            if not _is_number(value):
                return "Identical set value must be a number (count)"
            if value < 0:
                return "Set count cannot be negative"
            return _check_bounds(value, definition, "Set count")
        if not isinstance(value, (list, tuple)):
            return "Elements set value must be an array"
        for element in value:
            element_id, quantity = _element_fields(element)
            if not element_id:
                return "Set element must have an elementObjectDefinitionId"
            if element_id not in definition.set_elements:
                return f"Set element {element_id} is not defined in set"
            if not _is_number(quantity):
                return "Set element quantity must be a number"
            if quantity < 0:
                return "Set element quantity cannot be negative"
        return None

    # custom: free-form
    return None


def validate_instance_value(value: Any, definition: Definition) -> None:
    """
    Raise if a value is not valid for a definition.

    Raises:
        ValidationError: With the specific reason
    """
    error = check_instance_value(value, definition)
    if error:
        raise ValidationError(f"{definition.name}: {error}")


def _normalize(value: Any, definition: Definition) -> Any:
    """Store elements sets as tuples of SetElementValue."""
    if (
        definition.type == DefinitionType.SET
        and definition.set_type == SetType.ELEMENTS
        and isinstance(value, (list, tuple))
    ):
        normalized = []
        for element in value:
            element_id, quantity = _element_fields(element)
            normalized.append(SetElementValue(element_id, quantity))
        return tuple(normalized)
    return value


# =============================================================================
# Mutations (each returns a new Instance)
# =============================================================================

def set_instance_value(instance: Instance, definition: Definition, value: Any) -> Instance:
    """Validated replacement of an instance's stored value."""
    validate_instance_value(value, definition)
    return replace(instance, value=_normalize(value, definition))


def increment_instance(instance: Instance, definition: Definition, amount: float) -> Instance:
    """
    Add `amount` to a numeric (or identical-set) value.

    Raises:
        ValidationError: Non-numeric definition, or result outside min/max
    """
    numeric = definition.type.is_numeric or (
        definition.type == DefinitionType.SET and definition.set_type == SetType.IDENTICAL
    )
    if not numeric:
        raise ValidationError(f"{definition.name}: cannot increment a {definition.type.value} value")
    if not _is_number(amount):
        raise ValidationError(f"{definition.name}: increment must be a number")
    current = instance.value if _is_number(instance.value) else 0
    return set_instance_value(instance, definition, current + amount)


def adjust_set_count(instance: Instance, definition: Definition, delta: float) -> Instance:
    """
    Change an identical set's count by `delta`.

    The count is clamped at 0 (or the definition's min, if higher) and at
    the definition's max, so repeated decrements never go negative.
    """
    if definition.type != DefinitionType.SET or definition.set_type != SetType.IDENTICAL:
        raise ValidationError(f"{definition.name}: not an identical set")
    if not _is_number(delta):
        raise ValidationError(f"{definition.name}: count change must be a number")
    current = instance.value if _is_number(instance.value) else 0
    floor = max(0, definition.min) if definition.min is not None else 0
    count = max(floor, current + delta)
    if definition.max is not None:
        count = min(count, definition.max)
    return replace(instance, value=count)


def set_element_quantity(
    instance: Instance,
    definition: Definition,
    element_id: str,
    quantity: float,
) -> Instance:
    """
    Set one element's quantity in an elements set.

    Quantities are clamped at 0; a quantity of 0 removes the element line.

    Raises:
        ValidationError: Not an elements set, or element not declared on the set
    """
    if definition.type != DefinitionType.SET or definition.set_type != SetType.ELEMENTS:
        raise ValidationError(f"{definition.name}: not an elements set")
    if element_id not in definition.set_elements:
        raise ValidationError(f"{definition.name}: Set element {element_id} is not defined in set")
    if not _is_number(quantity):
        raise ValidationError(f"{definition.name}: Set element quantity must be a number")

    quantity = max(0, quantity)
    current = instance.value if isinstance(instance.value, (list, tuple)) else ()
    elements: List[SetElementValue] = []
    found = False
    for element in _normalize(current, definition):
        if element.element_definition_id == element_id:
            found = True
            if quantity > 0:
                elements.append(SetElementValue(element_id, quantity))
        else:
            elements.append(element)
    if not found and quantity > 0:
        elements.append(SetElementValue(element_id, quantity))
    return replace(instance, value=tuple(elements))


def reset_instance(instance: Instance, definition: Definition) -> Instance:
    """Back to the default value, clearing derived fields."""
    return replace(
        instance,
        value=_normalize(default_value_for(definition), definition),
        computed_value=None,
        last_computed_at=None,
        derived_state=None,
    )


# =============================================================================
# Materialization
# =============================================================================

def materialize_instances(
    definitions: Iterable[Definition],
    player_ids: Iterable[str],
    session_id: str,
) -> List[Instance]:
    """
    Create a session's instances from its definitions.

    - GLOBAL / INACTIVE: one global instance
    - REFERS_TO: one global instance, stored state "inactive"
    - PER_PLAYER: one instance per player
    """
    player_ids = list(player_ids)
    instances: List[Instance] = []

    for definition in definitions:
        value = _normalize(default_value_for(definition), definition)
        kind = definition.ownership.kind

        if kind in (OwnershipKind.GLOBAL, OwnershipKind.INACTIVE):
            instances.append(Instance(
                id=f"{definition.id}-session-{session_id}",
                definition_id=definition.id,
                value=value,
            ))
        elif kind == OwnershipKind.PER_PLAYER:
            for player_id in player_ids:
                instances.append(Instance(
                    id=f"{definition.id}-{player_id}",
                    definition_id=definition.id,
                    player_id=player_id,
                    value=value,
                ))
        else:
            instances.append(Instance(
                id=f"{definition.id}-session-{session_id}",
                definition_id=definition.id,
                value=value,
                state=STATE_INACTIVE,
            ))

    return instances
