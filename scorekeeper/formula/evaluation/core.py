"""
Formula Evaluator.

Evaluates formula ASTs against an EvaluationContext.

Key Features:
- Numeric-constant fast path ("5" is always 5)
- IEEE division (x/0 is +/-inf, never an error)
- Function dispatch through the function registry
- Depth guard for nested formula evaluation

Usage:
    evaluator = FormulaEvaluator()
    value = evaluator.evaluate("{Territories} * 2", context)
"""

from __future__ import annotations

from typing import Optional

from ...config import get_config
from ..errors import CircularReferenceError, EvaluationError, FormulaSyntaxError
from ..nodes import BinaryOp, Call, Node, Number, Reference, UnaryOp
from ..parser import parse_constant, parse_formula
from ..registry import FunctionKind, get_function_spec, validate_call
from ..types import FormulaValue
from .context import EvaluationContext
from .functions import NODE_FUNCTIONS, NUMERIC_FUNCTIONS, divide, power


class FormulaEvaluator:
    """
    Evaluates formulas against a context.

    Stateless and deterministic; one instance can be shared across
    evaluations.

    Attributes:
        max_depth: Nesting limit for formula-to-formula evaluation
    """

    def __init__(self, max_depth: Optional[int] = None):
        """
        Initialize evaluator.

        Args:
            max_depth: Nesting limit (default: config engine.max_formula_depth)
        """
        if max_depth is None:
            max_depth = get_config().engine.max_formula_depth
        self.max_depth = max_depth

    def evaluate(self, formula: str, context: EvaluationContext) -> float:
        """
        Evaluate formula text to a number.

        Raises:
            EvaluationError: Any failure, including syntax errors in saved
                formulas and CircularReferenceError
        """
        return self.evaluate_value(formula, context).to_number()

    def evaluate_value(self, formula: str, context: EvaluationContext) -> FormulaValue:
        """Evaluate formula text to a tagged value."""
        if context.depth > self.max_depth:
            raise CircularReferenceError(
                f"Formula nesting exceeded {self.max_depth} levels (circular reference?)"
            )
        if formula is not None:
            constant = parse_constant(formula)
            if constant is not None:
                return FormulaValue.number(constant)
        try:
            node = parse_formula(formula)
        except FormulaSyntaxError as e:
            raise EvaluationError(f"Formula error: {e}") from e
        try:
            return self.evaluate_node(node, context)
        except ArithmeticError as e:
            raise EvaluationError(f"Arithmetic error: {e}") from e
        except RecursionError as e:
            raise EvaluationError("Formula too deeply nested to evaluate") from e

    def evaluate_node(self, node: Node, context: EvaluationContext) -> FormulaValue:
        """Evaluate an AST node."""
        if isinstance(node, Number):
            return FormulaValue.number(node.value)
        elif isinstance(node, Reference):
            return context.resolve(node.name)
        elif isinstance(node, UnaryOp):
            operand = self.evaluate_node(node.operand, context).to_number()
            return FormulaValue.number(-operand if node.op == "-" else operand)
        elif isinstance(node, BinaryOp):
            return self._eval_binary(node, context)
        elif isinstance(node, Call):
            return self._eval_call(node, context)
        else:
            raise EvaluationError(f"Unknown node type: {type(node).__name__}")

    def _eval_binary(self, node: BinaryOp, context: EvaluationContext) -> FormulaValue:
        left = self.evaluate_node(node.left, context).to_number()
        right = self.evaluate_node(node.right, context).to_number()
        if node.op == "+":
            result = left + right
        elif node.op == "-":
            result = left - right
        elif node.op == "*":
            result = left * right
        elif node.op == "/":
            result = divide(left, right)
        else:
            result = power(left, right)
        return FormulaValue.number(result)

    def _eval_call(self, node: Call, context: EvaluationContext) -> FormulaValue:
        error = validate_call(node.name, len(node.args))
        if error:
            raise EvaluationError(error)
        spec = get_function_spec(node.name)

        if spec.kind == FunctionKind.NUMERIC:
            args = [self.evaluate_node(arg, context).to_number() for arg in node.args]
            return FormulaValue.number(NUMERIC_FUNCTIONS[spec.name](args))
        return NODE_FUNCTIONS[spec.name](node.args, context, self)


_default_evaluator: Optional[FormulaEvaluator] = None


def get_evaluator() -> FormulaEvaluator:
    """Get or create the shared evaluator (configured from get_config())."""
    global _default_evaluator
    if _default_evaluator is None:
        _default_evaluator = FormulaEvaluator()
    return _default_evaluator


def evaluate_formula(formula: str, context: Optional[EvaluationContext] = None) -> float:
    """
    Evaluate formula text with the shared evaluator.

    Args:
        formula: Formula text
        context: Evaluation context (default: empty context)

    Raises:
        EvaluationError: On any evaluation failure
    """
    return get_evaluator().evaluate(formula, context or EvaluationContext())
