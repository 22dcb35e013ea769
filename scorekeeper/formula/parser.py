"""
Formula parser: text to AST.

Grammar (lowest to highest precedence):
```
expression := term (("+" | "-") term)*
term       := unary (("*" | "/") unary)*
unary      := ("-" | "+") unary | power
power      := primary ("^" unary)?          # right-associative
primary    := NUMBER
            | REFERENCE
            | IDENTIFIER "(" [expression ("," expression)*] ")"
            | "(" expression ")"
```
Unary minus binds looser than "^", so -2^2 is -(2^2) = -4, while
2^-1 is 0.5.

A formula that is entirely a (optionally signed) number is a constant and
skips the grammar: "5", "+7", "-2.5", "1e3".

Nesting (parentheses, calls, signs and exponents) is limited to
MAX_NESTING_DEPTH levels.

Usage:
    node = parse_formula("{Territories} * 2")
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import List, Optional

from .errors import FormulaSyntaxError
from .nodes import BinaryOp, Call, Node, Number, Reference, UnaryOp
from .tokenizer import Token, TokenKind, tokenize


NUMERIC_CONSTANT = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?\s*$")

# Deeper formulas are rejected before they exhaust the interpreter stack
MAX_NESTING_DEPTH = 64


def parse_constant(formula: str) -> Optional[float]:
    """Return the value of a bare-number formula, or None."""
    if NUMERIC_CONSTANT.match(formula):
        return float(formula.strip())
    return None


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: List[Token]):
        self._tokens = tokens
        self._pos = 0
        self._depth = 0

    @property
    def _current(self) -> Token:
        return self._tokens[self._pos]

    def _advance(self) -> Token:
        token = self._tokens[self._pos]
        if token.kind != TokenKind.END:
            self._pos += 1
        return token

    def _expect(self, kind: TokenKind, what: str) -> Token:
        token = self._current
        if token.kind != kind:
            found = token.text or "end of formula"
            raise FormulaSyntaxError(f"Expected {what}, found '{found}'", token.position)
        return self._advance()

    def _at_operator(self, *ops: str) -> bool:
        token = self._current
        return token.kind == TokenKind.OPERATOR and token.text in ops

    def parse(self) -> Node:
        node = self._expression()
        token = self._current
        if token.kind != TokenKind.END:
            raise FormulaSyntaxError(f"Unexpected '{token.text}'", token.position)
        return node

    def _expression(self) -> Node:
        node = self._term()
        while self._at_operator("+", "-"):
            op = self._advance().text
            node = BinaryOp(op, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while self._at_operator("*", "/"):
            op = self._advance().text
            node = BinaryOp(op, node, self._unary())
        return node

    def _unary(self) -> Node:
        # Every paren, call argument, sign and exponent passes through here
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise FormulaSyntaxError(
                f"Formula nested too deeply (limit {MAX_NESTING_DEPTH})",
                self._current.position,
            )
        try:
            if self._at_operator("-", "+"):
                op = self._advance().text
                return UnaryOp(op, self._unary())
            return self._power()
        finally:
            self._depth -= 1

    def _power(self) -> Node:
        base = self._primary()
        if self._at_operator("^"):
            self._advance()
            return BinaryOp("^", base, self._unary())
        return base

    def _primary(self) -> Node:
        token = self._current

        if token.kind == TokenKind.NUMBER:
            self._advance()
            return Number(float(token.text))

        if token.kind == TokenKind.REFERENCE:
            self._advance()
            return Reference(token.text)

        if token.kind == TokenKind.IDENTIFIER:
            self._advance()
            if self._current.kind != TokenKind.LPAREN:
                raise FormulaSyntaxError(
                    f"Unknown name '{token.text}' (references must be written as {{{token.text}}})",
                    token.position,
                )
            self._advance()
            return Call(token.text.lower(), tuple(self._arguments()))

        if token.kind == TokenKind.LPAREN:
            self._advance()
            node = self._expression()
            self._expect(TokenKind.RPAREN, "')'")
            return node

        if token.kind == TokenKind.END:
            raise FormulaSyntaxError("Unexpected end of formula", token.position)
        raise FormulaSyntaxError(f"Unexpected '{token.text}'", token.position)

    def _arguments(self) -> List[Node]:
        args: List[Node] = []
        if self._current.kind == TokenKind.RPAREN:
            self._advance()
            return args
        while True:
            args.append(self._expression())
            if self._current.kind == TokenKind.COMMA:
                self._advance()
                continue
            self._expect(TokenKind.RPAREN, "',' or ')'")
            return args


@lru_cache(maxsize=1024)
def parse_formula(formula: str) -> Node:
    """
    Parse formula text to an AST.

    Results are cached; nodes are immutable.

    Raises:
        FormulaSyntaxError: Empty or malformed formula
    """
    if formula is None or not formula.strip():
        raise FormulaSyntaxError("Formula cannot be empty")
    constant = parse_constant(formula)
    if constant is not None:
        return Number(constant)
    return _Parser(tokenize(formula)).parse()
