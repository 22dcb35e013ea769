"""
Formula function implementations.

Numeric functions take already-coerced float arguments. Context and lazy
functions take the raw argument nodes plus the evaluator, because they
either need a reference's name (state, owns) or must not evaluate every
argument (if).
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Callable, Dict, List, Protocol, Sequence

from ..errors import EvaluationError
from ..nodes import Node, Reference
from ..types import FormulaValue

if TYPE_CHECKING:
    from .context import EvaluationContext


# Float64 carries about 15 significant decimal digits
MAX_ROUND_DECIMALS = 15


class NodeEvaluatorProtocol(Protocol):
    """Protocol for the formula evaluator to avoid circular imports."""

    def evaluate_node(self, node: Node, context: "EvaluationContext") -> FormulaValue: ...


# =============================================================================
# Arithmetic
# =============================================================================

def divide(a: float, b: float) -> float:
    """IEEE float division: x/0 is +/-inf, 0/0 is nan."""
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def power(a: float, b: float) -> float:
    """Exponentiation without exceptions: domain errors give nan, overflow inf."""
    if a == 0 and b < 0:
        return math.inf
    try:
        return math.pow(a, b)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


def round_half_up(value: float, decimals: float = 0) -> float:
    """
    Round half-up (toward +inf on .5) to `decimals` places.

    `decimals` is clamped to +/-MAX_ROUND_DECIMALS; values that cannot be
    scaled without overflow are returned unchanged.
    """
    if math.isnan(value) or math.isinf(value):
        return value
    places = max(-MAX_ROUND_DECIMALS, min(MAX_ROUND_DECIMALS, int(decimals)))
    factor = math.pow(10, places)
    scaled = value * factor + 0.5
    if math.isinf(scaled):
        return value
    return math.floor(scaled) / factor


# =============================================================================
# Numeric functions
# =============================================================================

def fsum(args: Sequence[float]) -> float:
    """Exact float sum; overflow and inf - inf fall back to IEEE addition."""
    try:
        return math.fsum(args)
    except (OverflowError, ValueError):
        return sum(args, 0.0)


NUMERIC_FUNCTIONS: Dict[str, Callable[[List[float]], float]] = {
    "max": lambda args: max(args),
    "min": lambda args: min(args),
    "sum": lambda args: fsum(args),
    "avg": lambda args: fsum(args) / len(args),
    "abs": lambda args: abs(args[0]),
    "floor": lambda args: float(math.floor(args[0])) if math.isfinite(args[0]) else args[0],
    "ceil": lambda args: float(math.ceil(args[0])) if math.isfinite(args[0]) else args[0],
}


# =============================================================================
# Context functions
# =============================================================================

def _reference_name(function: str, node: Node) -> str:
    if not isinstance(node, Reference):
        raise EvaluationError(f"{function}() requires an object reference as argument")
    return node.name


def fn_round(
    args: Sequence[Node],
    context: "EvaluationContext",
    evaluator: NodeEvaluatorProtocol,
) -> FormulaValue:
    """round() is the current round index; round(x[, decimals]) rounds half-up."""
    if not args:
        return FormulaValue.number(context.round_index)
    values = [evaluator.evaluate_node(arg, context).to_number() for arg in args]
    decimals = values[1] if len(values) > 1 else 0
    if not math.isfinite(decimals):
        raise EvaluationError(f"round() decimals must be finite, got {decimals}")
    return FormulaValue.number(round_half_up(values[0], decimals))


def fn_state(
    args: Sequence[Node],
    context: "EvaluationContext",
    evaluator: NodeEvaluatorProtocol,
) -> FormulaValue:
    """state({Object}) -> state tag as text (numeric via the state code table)."""
    name = _reference_name("state", args[0])
    return FormulaValue.text(context.state_of(name))


def fn_owns(
    args: Sequence[Node],
    context: "EvaluationContext",
    evaluator: NodeEvaluatorProtocol,
) -> FormulaValue:
    """owns({Object}[, player]) -> boolean."""
    name = _reference_name("owns", args[0])
    player_id = None
    if len(args) > 1:
        player_arg = args[1]
        if isinstance(player_arg, Reference):
            player_id = player_arg.name
        else:
            number = evaluator.evaluate_node(player_arg, context).to_number()
            player_id = str(int(number)) if float(number).is_integer() else str(number)
    return FormulaValue.boolean(context.owns(name, player_id))


def fn_phase(
    args: Sequence[Node],
    context: "EvaluationContext",
    evaluator: NodeEvaluatorProtocol,
) -> FormulaValue:
    return FormulaValue.boolean(context.phase_active)


def fn_if(
    args: Sequence[Node],
    context: "EvaluationContext",
    evaluator: NodeEvaluatorProtocol,
) -> FormulaValue:
    """if(condition, then, else). Only the chosen branch is evaluated."""
    condition = evaluator.evaluate_node(args[0], context)
    branch = args[1] if condition.is_truthy() else args[2]
    return evaluator.evaluate_node(branch, context)


NODE_FUNCTIONS = {
    "round": fn_round,
    "state": fn_state,
    "owns": fn_owns,
    "phase": fn_phase,
    "if": fn_if,
}
