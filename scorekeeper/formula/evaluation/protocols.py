"""
Shared protocols for formula evaluation.

Provides Protocol classes to avoid circular imports between the formula
package and the engine's reference resolver.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from ..types import FormulaValue
    from .context import EvaluationContext


class ReferenceResolverProtocol(Protocol):
    """Maps `{name}` references and object lookups to values."""

    def resolve(self, name: str, context: "EvaluationContext") -> "FormulaValue": ...

    def state_of(self, name: str, player_id: Optional[str]) -> str: ...

    def owns(self, name: str, player_id: Optional[str]) -> bool: ...
