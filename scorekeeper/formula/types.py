"""
Formula value type definitions.

Every value flowing through evaluation is a FormulaValue: a payload tagged
with its ValueType. Arithmetic only ever sees numbers, obtained through the
single coercion table in FormulaValue.to_number():

    NUMBER   -> itself
    BOOLEAN  -> 1 / 0
    TEXT     -> state tag code (inactive 0, active 1, owned 2, discarded -1),
                numeric text parsed, blank text 0, anything else a type mismatch
    SET      -> identical set: count; elements set: total quantity
    missing  -> 0
"""

from dataclasses import dataclass, field
from enum import IntEnum, auto
from typing import Any, Iterable, List, Tuple

from ..config.constants import STATE_CODES
from .errors import EvaluationError


class ValueType(IntEnum):
    """Tag of a FormulaValue."""

    NUMBER = auto()
    BOOLEAN = auto()
    TEXT = auto()
    SET = auto()


def _element_quantity(element: Any) -> float:
    """Quantity of one element line (SetElementValue or its dict form)."""
    if isinstance(element, dict):
        quantity = element.get("quantity", 0)
    else:
        quantity = getattr(element, "quantity", 0)
    try:
        return float(quantity or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class FormulaValue:
    """
    A tagged formula value.

    Attributes:
        value: Payload (float, bool, str, or set payload)
        value_type: Tag

    Set payloads are a number (identical sets) or a tuple of element lines
    (elements sets).
    """

    value: Any
    value_type: ValueType

    # ==================== Constructors ====================

    @classmethod
    def number(cls, value: float) -> "FormulaValue":
        return cls(float(value), ValueType.NUMBER)

    @classmethod
    def boolean(cls, value: bool) -> "FormulaValue":
        return cls(bool(value), ValueType.BOOLEAN)

    @classmethod
    def text(cls, value: str) -> "FormulaValue":
        return cls(str(value), ValueType.TEXT)

    @classmethod
    def set_count(cls, count: float) -> "FormulaValue":
        return cls(count, ValueType.SET)

    @classmethod
    def set_elements(cls, elements: Iterable[Any]) -> "FormulaValue":
        return cls(tuple(elements), ValueType.SET)

    @classmethod
    def from_python(cls, value: Any) -> "FormulaValue":
        """
        Tag a raw stored value.

        Lists/tuples are treated as elements sets; None becomes 0.
        """
        if value is None:
            return cls.number(0.0)
        if isinstance(value, FormulaValue):
            return value
        if isinstance(value, bool):
            return cls.boolean(value)
        if isinstance(value, (int, float)):
            return cls.number(value)
        if isinstance(value, str):
            return cls.text(value)
        if isinstance(value, (list, tuple)):
            return cls.set_elements(value)
        raise EvaluationError(f"Unsupported value type: {type(value).__name__}")

    # ==================== Coercion ====================

    def to_number(self) -> float:
        """
        Coerce to a number using the documented table.

        Raises:
            EvaluationError: Text that is neither a state tag nor numeric
        """
        if self.value_type == ValueType.NUMBER:
            return self.value
        if self.value_type == ValueType.BOOLEAN:
            return 1.0 if self.value else 0.0
        if self.value_type == ValueType.SET:
            if isinstance(self.value, tuple):
                return sum(_element_quantity(e) for e in self.value)
            try:
                return float(self.value or 0)
            except (TypeError, ValueError):
                return 0.0
        text = self.value.strip()
        if not text:
            return 0.0
        code = STATE_CODES.get(text.lower())
        if code is not None:
            return float(code)
        try:
            return float(text)
        except ValueError:
            raise EvaluationError(f"Type mismatch: cannot use text {self.value!r} as a number")

    def is_truthy(self) -> bool:
        """Truthiness for if(): booleans as-is, otherwise the number is non-zero."""
        if self.value_type == ValueType.BOOLEAN:
            return self.value
        if self.value_type == ValueType.TEXT:
            text = self.value.strip()
            code = STATE_CODES.get(text.lower())
            if code is not None:
                return code > 0
            return bool(text)
        number = self.to_number()
        return number != 0 and number == number

    def __repr__(self) -> str:
        return f"{self.value_type.name}({self.value!r})"


@dataclass(frozen=True)
class FormulaValidation:
    """
    Result of validating a formula.

    Attributes:
        valid: False only for syntax/function errors
        error: Error message when invalid
        warnings: Non-fatal findings such as unknown references
    """

    valid: bool
    error: str | None = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls, warnings: List[str] | None = None) -> "FormulaValidation":
        return cls(valid=True, warnings=tuple(warnings or ()))

    @classmethod
    def failure(cls, error: str) -> "FormulaValidation":
        return cls(valid=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"valid": self.valid}
        if self.error is not None:
            result["error"] = self.error
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result
