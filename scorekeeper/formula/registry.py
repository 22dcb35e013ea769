"""
Function Registry - single source of truth for formula function signatures.

Used by:
- Validation (reject unknown functions and bad arity at edit time)
- Runtime evaluation dispatch (same checks, raised as EvaluationError)

Adding a function requires an entry here and an implementation in
evaluation/functions.py.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import FrozenSet, Optional


class FunctionKind(Enum):
    """How a function's arguments are consumed."""
    NUMERIC = auto()    # all arguments evaluated and coerced to numbers
    CONTEXT = auto()    # reads the evaluation context (state, owns, phase, round)
    LAZY = auto()       # arguments evaluated on demand (if)


@dataclass(frozen=True)
class FunctionSpec:
    """
    Signature of a formula function.

    Attributes:
        name: Canonical lowercase name
        min_args: Minimum argument count
        max_args: Maximum argument count (None = variadic)
        kind: Argument handling
        description: One-line help text
    """
    name: str
    min_args: int
    max_args: Optional[int]
    kind: FunctionKind = FunctionKind.NUMERIC
    description: str = ""

    def accepts(self, argc: int) -> bool:
        if argc < self.min_args:
            return False
        return self.max_args is None or argc <= self.max_args

    def arity_text(self) -> str:
        if self.max_args is None:
            return f"at least {self.min_args} argument{'s' if self.min_args != 1 else ''}"
        if self.min_args == self.max_args:
            return f"exactly {self.min_args} argument{'s' if self.min_args != 1 else ''}"
        return f"{self.min_args} to {self.max_args} arguments"


# =============================================================================
# FUNCTION REGISTRY - Single Source of Truth
# =============================================================================

FUNCTION_REGISTRY = {
    # Numeric aggregates (variadic)
    "max": FunctionSpec("max", 1, None, description="Largest argument"),
    "min": FunctionSpec("min", 1, None, description="Smallest argument"),
    "sum": FunctionSpec("sum", 1, None, description="Sum of arguments"),
    "avg": FunctionSpec("avg", 1, None, description="Mean of arguments"),

    # Numeric unary
    "abs": FunctionSpec("abs", 1, 1, description="Absolute value"),
    "floor": FunctionSpec("floor", 1, 1, description="Round down"),
    "ceil": FunctionSpec("ceil", 1, 1, description="Round up"),

    # round() with no arguments is the current round index;
    # round(x[, decimals]) rounds half-up
    "round": FunctionSpec(
        "round", 0, 2, kind=FunctionKind.CONTEXT,
        description="round(x, decimals) rounds half-up; round() is the current round index",
    ),

    # Context-aware
    "state": FunctionSpec(
        "state", 1, 1, kind=FunctionKind.CONTEXT,
        description="State tag of a referenced object",
    ),
    "owns": FunctionSpec(
        "owns", 1, 2, kind=FunctionKind.CONTEXT,
        description="Whether a player (default: current) owns a referenced object",
    ),
    "phase": FunctionSpec(
        "phase", 0, 0, kind=FunctionKind.CONTEXT,
        description="Whether a phase is set for the session",
    ),

    # Lazy
    "if": FunctionSpec(
        "if", 3, 3, kind=FunctionKind.LAZY,
        description="if(condition, then, else); only the chosen branch is evaluated",
    ),
}

SUPPORTED_FUNCTIONS: FrozenSet[str] = frozenset(FUNCTION_REGISTRY.keys())


def get_function_spec(name: str) -> Optional[FunctionSpec]:
    """
    Get function specification from registry.

    Args:
        name: Function name (case-insensitive)

    Returns:
        FunctionSpec if known, None if unknown
    """
    return FUNCTION_REGISTRY.get(name.lower())


def validate_call(name: str, argc: int) -> Optional[str]:
    """
    Validate a function call signature.

    Args:
        name: Function name
        argc: Number of arguments supplied

    Returns:
        Error message if invalid, None if valid
    """
    spec = get_function_spec(name)
    if spec is None:
        return (
            f"Unknown function '{name}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_FUNCTIONS))}"
        )
    if not spec.accepts(argc):
        return f"Function '{spec.name}' takes {spec.arity_text()}, got {argc}"
    return None
