"""
scorekeeper - Scoring Calculation Engine

Turns raw, additive score entries plus user-authored declarative rules
(category formulas, weights, object/variable calculations, ownership and
temporal visibility, conditional scoring rules) into consistent totals.

The engine is a pure, synchronous library: callers own persistence and merge
the returned totals, instance updates and new score entries back into their
own state.
"""

__version__ = "1.0.0"
__author__ = "scorekeeper"
