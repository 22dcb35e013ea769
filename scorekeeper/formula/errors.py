"""
Formula and write-boundary exception taxonomy.

- FormulaSyntaxError: malformed formula text (surfaced by validation)
- EvaluationError: bad arity, unknown function, type mismatch
- CircularReferenceError: formula cycles or nesting limit exceeded
- UnknownReferenceWarning: reference resolved to nothing (evaluates as 0)
- ValidationError: instance value rejected at the write boundary
- TemplateFormatError: malformed template document

Evaluation callers catch EvaluationError and fall back to a previous value;
nothing here is meant to abort a whole pipeline.
"""


class FormulaError(Exception):
    """Base class for formula failures."""


class FormulaSyntaxError(FormulaError):
    """
    Malformed formula text.

    Attributes:
        position: Character offset where the problem was found, if known
    """

    def __init__(self, message: str, position: int | None = None):
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)


class EvaluationError(FormulaError):
    """A well-formed formula that cannot be evaluated."""


class CircularReferenceError(EvaluationError):
    """Formula references form a cycle, or nesting exceeded the depth limit."""


class UnknownReferenceWarning(UserWarning):
    """A `{name}` reference matched no category, definition or id."""


class ValidationError(ValueError):
    """An instance value rejected at the write boundary."""


class TemplateFormatError(ValueError):
    """A template document that cannot be decoded."""
