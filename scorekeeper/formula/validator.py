"""
Formula validation for editor feedback.

Syntax-only: no evaluation context is needed. Unknown references are
reported as warnings, never errors, because they evaluate as 0.

Functions:
- validate_formula: Syntax, function and arity check, optional reference warnings
- formula_references: Distinct {name} references in a formula
- detect_formula_cycles: DFS-based circular dependency detection
"""

from __future__ import annotations

import difflib
from typing import Iterable, Mapping, Optional

from .errors import FormulaSyntaxError
from .nodes import Call, walk
from .parser import parse_formula
from .registry import validate_call
from .tokenizer import reference_names
from .types import FormulaValidation


def formula_references(formula: str) -> list[str]:
    """
    Distinct `{name}` references in order of first appearance.

    Never raises; malformed formulas list what can be found.
    """
    if not formula:
        return []
    return reference_names(formula)


def validate_formula(
    formula: str,
    known_names: Optional[Iterable[str]] = None,
) -> FormulaValidation:
    """
    Validate formula text.

    Args:
        formula: Formula text
        known_names: Category/definition names and ids that references may
            use. When given, unknown references produce warnings.

    Returns:
        FormulaValidation(valid, error, warnings)
    """
    if formula is None or not formula.strip():
        return FormulaValidation.failure("Formula cannot be empty")

    try:
        node = parse_formula(formula)
    except FormulaSyntaxError as e:
        return FormulaValidation.failure(str(e))

    for sub in walk(node):
        if isinstance(sub, Call):
            error = validate_call(sub.name, len(sub.args))
            if error:
                return FormulaValidation.failure(error)

    warnings: list[str] = []
    if known_names is not None:
        names = list(known_names)
        lowered = {n.lower() for n in names}
        for ref in formula_references(formula):
            if ref.lower() in lowered or ref in names:
                continue
            msg = f"Unknown reference {{{ref}}} will evaluate as 0"
            suggestions = difflib.get_close_matches(ref, names, n=3, cutoff=0.5)
            if suggestions:
                msg += f" (did you mean: {', '.join(suggestions)}?)"
            warnings.append(msg)

    return FormulaValidation.success(warnings)


def detect_formula_cycles(formulas: Mapping[str, str]) -> list[str]:
    """
    Detect circular references between named formulas via DFS.

    Args:
        formulas: Map of name -> formula text. References are matched
            against the names case-insensitively.

    Returns:
        List of error messages describing circular references.
    """
    by_lower = {name.lower(): name for name in formulas}
    edges = {
        name: [
            by_lower[ref.lower()]
            for ref in formula_references(text or "")
            if ref.lower() in by_lower
        ]
        for name, text in formulas.items()
    }

    errors: list[str] = []
    # States: 0=unvisited, 1=in-progress, 2=done
    state: dict[str, int] = {name: 0 for name in formulas}
    path: list[str] = []

    def _dfs(name: str) -> None:
        if state[name] == 2:
            return
        if state[name] == 1:
            cycle_start = path.index(name)
            cycle = path[cycle_start:] + [name]
            errors.append(f"circular formula reference: {' -> '.join(cycle)}")
            return

        state[name] = 1
        path.append(name)
        for target in edges[name]:
            _dfs(target)
        path.pop()
        state[name] = 2

    for name in formulas:
        _dfs(name)

    return errors
