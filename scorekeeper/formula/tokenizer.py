"""
Formula tokenizer.

Token kinds:
    NUMBER      digits with at most one decimal point and an optional
                exponent: 3, 2.5, .5, 1e3, 2.5E-2
    REFERENCE   {name} - name is everything between the braces, trimmed
    OPERATOR    + - * / ^
    LPAREN      (
    RPAREN      )
    COMMA       ,
    IDENTIFIER  function name: letter followed by letters, digits or _

Whitespace is skipped. Anything else is a FormulaSyntaxError.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import List

from .errors import FormulaSyntaxError


OPERATOR_CHARS = frozenset("+-*/^")


class TokenKind(Enum):
    NUMBER = auto()
    REFERENCE = auto()
    OPERATOR = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    IDENTIFIER = auto()
    END = auto()


@dataclass(frozen=True)
class Token:
    """A token with its source position (character offset)."""
    kind: TokenKind
    text: str
    position: int

    def __repr__(self) -> str:
        return f"{self.kind.name}({self.text!r}@{self.position})"


def tokenize(formula: str) -> List[Token]:
    """
    Split formula text into tokens, terminated by an END token.

    Raises:
        FormulaSyntaxError: Unexpected character, malformed number,
            unterminated or empty reference
    """
    tokens: List[Token] = []
    i = 0
    n = len(formula)

    while i < n:
        char = formula[i]

        if char.isspace():
            i += 1
            continue

        if char.isdigit() or char == ".":
            start = i
            dots = 0
            while i < n and (formula[i].isdigit() or formula[i] == "."):
                if formula[i] == ".":
                    dots += 1
                i += 1
            if dots > 1 or formula[start:i] == ".":
                raise FormulaSyntaxError(f"Invalid number '{formula[start:i]}'", start)
            if i < n and formula[i] in "eE":
                j = i + 1
                if j < n and formula[j] in "+-":
                    j += 1
                if j < n and formula[j].isdigit():
                    while j < n and formula[j].isdigit():
                        j += 1
                    i = j
            text = formula[start:i]
            tokens.append(Token(TokenKind.NUMBER, text, start))
            continue

        if char == "{":
            start = i
            end = formula.find("}", i + 1)
            if end == -1:
                raise FormulaSyntaxError("Unterminated reference, missing '}'", start)
            name = formula[i + 1:end].strip()
            if not name:
                raise FormulaSyntaxError("Empty reference '{}'", start)
            tokens.append(Token(TokenKind.REFERENCE, name, start))
            i = end + 1
            continue

        if char in OPERATOR_CHARS:
            tokens.append(Token(TokenKind.OPERATOR, char, i))
            i += 1
            continue

        if char == "(":
            tokens.append(Token(TokenKind.LPAREN, char, i))
            i += 1
            continue

        if char == ")":
            tokens.append(Token(TokenKind.RPAREN, char, i))
            i += 1
            continue

        if char == ",":
            tokens.append(Token(TokenKind.COMMA, char, i))
            i += 1
            continue

        if char.isalpha():
            start = i
            while i < n and (formula[i].isalnum() or formula[i] == "_"):
                i += 1
            tokens.append(Token(TokenKind.IDENTIFIER, formula[start:i], start))
            continue

        raise FormulaSyntaxError(f"Unexpected character '{char}'", i)

    tokens.append(Token(TokenKind.END, "", n))
    return tokens


def reference_names(formula: str) -> List[str]:
    """
    Distinct `{name}` references in order of first appearance.

    Never raises. Scans braces directly, so a formula with other syntax
    errors still lists its references; an unterminated brace ends the scan.
    """
    names: List[str] = []
    seen: set[str] = set()
    i = 0
    while True:
        start = formula.find("{", i)
        if start == -1:
            break
        end = formula.find("}", start + 1)
        if end == -1:
            break
        name = formula[start + 1:end].strip()
        if name and name.lower() not in seen:
            seen.add(name.lower())
            names.append(name)
        i = end + 1
    return names
