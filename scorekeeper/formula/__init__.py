"""
Formula expression language.

Formulas are persisted verbatim in templates and evaluated on demand:
literals, {name} references, + - * / ^ with parentheses, and the
functions max min sum avg round abs floor ceil state owns phase if.

Usage:
    from scorekeeper.formula import EvaluationContext, evaluate_formula

    evaluate_formula("{Territories} * 2", EvaluationContext(totals={"Territories": 5}))
"""

from .errors import (
    CircularReferenceError,
    EvaluationError,
    FormulaError,
    FormulaSyntaxError,
    TemplateFormatError,
    UnknownReferenceWarning,
    ValidationError,
)
from .types import FormulaValidation, FormulaValue, ValueType
from .nodes import BinaryOp, Call, Node, Number, Reference, UnaryOp
from .tokenizer import Token, TokenKind, tokenize
from .parser import parse_constant, parse_formula
from .registry import FUNCTION_REGISTRY, FunctionSpec, get_function_spec, validate_call
from .validator import detect_formula_cycles, formula_references, validate_formula
from .evaluation import EvaluationContext, FormulaEvaluator, evaluate_formula

__all__ = [
    # Errors
    "CircularReferenceError",
    "EvaluationError",
    "FormulaError",
    "FormulaSyntaxError",
    "TemplateFormatError",
    "UnknownReferenceWarning",
    "ValidationError",
    # Values
    "FormulaValidation",
    "FormulaValue",
    "ValueType",
    # AST
    "BinaryOp",
    "Call",
    "Node",
    "Number",
    "Reference",
    "UnaryOp",
    # Parsing
    "Token",
    "TokenKind",
    "tokenize",
    "parse_constant",
    "parse_formula",
    # Functions
    "FUNCTION_REGISTRY",
    "FunctionSpec",
    "get_function_spec",
    "validate_call",
    # Validation
    "detect_formula_cycles",
    "formula_references",
    "validate_formula",
    # Evaluation
    "EvaluationContext",
    "FormulaEvaluator",
    "evaluate_formula",
]
