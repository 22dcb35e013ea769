"""
Formula evaluation package.

- context.py: EvaluationContext threaded through evaluation
- functions.py: Function implementations
- core.py: FormulaEvaluator dispatch
- protocols.py: Resolver protocol
"""

from .context import EvaluationContext
from .core import FormulaEvaluator, evaluate_formula, get_evaluator
from .functions import divide, power, round_half_up
from .protocols import ReferenceResolverProtocol

__all__ = [
    "EvaluationContext",
    "FormulaEvaluator",
    "evaluate_formula",
    "get_evaluator",
    "divide",
    "power",
    "round_half_up",
    "ReferenceResolverProtocol",
]
