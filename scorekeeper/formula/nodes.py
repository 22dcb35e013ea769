"""
Formula AST node types.

- Number: numeric literal
- Reference: {name} reference
- UnaryOp: unary minus / plus
- BinaryOp: + - * / ^
- Call: function call name(arg, ...)

Nodes are frozen, so parsed trees can be cached and shared.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple, Union


BINARY_OPERATORS = frozenset({"+", "-", "*", "/", "^"})
UNARY_OPERATORS = frozenset({"+", "-"})


@dataclass(frozen=True)
class Number:
    """Numeric literal."""
    value: float

    def __repr__(self) -> str:
        return f"Number({self.value})"


@dataclass(frozen=True)
class Reference:
    """
    A `{name}` reference.

    Attributes:
        name: Reference text as written (resolution is case-insensitive)
    """
    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError("Reference: name is required")

    def __repr__(self) -> str:
        return f"Ref({self.name!r})"


@dataclass(frozen=True)
class UnaryOp:
    op: str
    operand: "Node"

    def __post_init__(self):
        if self.op not in UNARY_OPERATORS:
            raise ValueError(f"UnaryOp: invalid operator '{self.op}'")


@dataclass(frozen=True)
class BinaryOp:
    """Binary arithmetic expression."""
    op: str
    left: "Node"
    right: "Node"

    def __post_init__(self):
        if self.op not in BINARY_OPERATORS:
            raise ValueError(
                f"BinaryOp: invalid operator '{self.op}'. "
                f"Valid: {sorted(BINARY_OPERATORS)}"
            )

    def __repr__(self) -> str:
        return f"({self.left!r} {self.op} {self.right!r})"


@dataclass(frozen=True)
class Call:
    """
    Function call.

    Attributes:
        name: Function name, lowercased by the parser
        args: Argument nodes
    """
    name: str
    args: Tuple["Node", ...] = ()

    def __repr__(self) -> str:
        return f"{self.name}({', '.join(repr(a) for a in self.args)})"


Node = Union[Number, Reference, UnaryOp, BinaryOp, Call]


def walk(node: Node) -> Iterator[Node]:
    """Yield node and all of its descendants, depth first (pre-order)."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, UnaryOp):
            stack.append(current.operand)
        elif isinstance(current, BinaryOp):
            stack.append(current.right)
            stack.append(current.left)
        elif isinstance(current, Call):
            stack.extend(reversed(current.args))
