"""
Test builders - small, deterministic constructors for engine inputs.

Provides:
- SequentialIds: predictable id factory for minted entries and records
- category / entry / definition / instance builders with short signatures
- snapshot(): ScoringSnapshot with sensible defaults for two players
- territory_snapshot(): the Territories / Area / Victory Points scenario
"""

from __future__ import annotations

import itertools
from typing import Any, Iterable

from scorekeeper.models import (
    ActiveWindow,
    Category,
    Definition,
    DefinitionType,
    DisplayType,
    Instance,
    Ownership,
    OwnershipKind,
    Round,
    ScoreEntry,
    ScoringSnapshot,
    SessionSettings,
)


PLAYERS = ("p1", "p2")
NOW = 1_700_000_000_000


class SequentialIds:
    """Callable id factory yielding id-1, id-2, ..."""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


_entry_ids = itertools.count(1)


# =============================================================================
# Record builders
# =============================================================================

def category(
    id: str,
    name: str | None = None,
    *,
    parent: str | None = None,
    display: DisplayType = DisplayType.SUM,
    weight: float | None = None,
    formula: str | None = None,
    sort: int = 0,
) -> Category:
    return Category(
        id=id,
        name=name or id,
        parent_id=parent,
        sort_order=sort,
        display_type=display,
        weight=weight,
        formula=formula,
    )


def formula_category(id: str, formula: str, name: str | None = None, **kwargs) -> Category:
    return category(id, name, display=DisplayType.FORMULA, formula=formula, **kwargs)


def entry(
    player_id: str,
    value: float,
    category_id: str | None = None,
    round_id: str | None = None,
) -> ScoreEntry:
    return ScoreEntry(
        id=f"e-{next(_entry_ids)}",
        player_id=player_id,
        value=value,
        created_at=NOW,
        round_id=round_id,
        category_id=category_id,
    )


def entries(player_id: str, category_id: str | None, values: Iterable[float]) -> list[ScoreEntry]:
    return [entry(player_id, v, category_id) for v in values]


def definition(
    id: str,
    name: str | None = None,
    *,
    type: DefinitionType = DefinitionType.NUMBER,
    ownership: Ownership | OwnershipKind = OwnershipKind.PER_PLAYER,
    window: ActiveWindow | None = None,
    **kwargs: Any,
) -> Definition:
    if isinstance(ownership, OwnershipKind):
        ownership = Ownership(ownership)
    return Definition(
        id=id,
        name=name or id,
        type=type,
        ownership=ownership,
        active_window=window or ActiveWindow.always(),
        **kwargs,
    )


def instance(
    definition_id: str,
    player_id: str | None = None,
    value: Any = 0,
    **kwargs: Any,
) -> Instance:
    suffix = player_id or "global"
    return Instance(
        id=f"{definition_id}-{suffix}",
        definition_id=definition_id,
        player_id=player_id,
        value=value,
        **kwargs,
    )


def snapshot(**kwargs: Any) -> ScoringSnapshot:
    """ScoringSnapshot with two players unless overridden."""
    kwargs.setdefault("player_ids", PLAYERS)
    return ScoringSnapshot(**kwargs)


def rounds_snapshot(count: int = 2, **kwargs: Any) -> ScoringSnapshot:
    """Snapshot with rounds enabled and `count` rounds r1..rN (latest is current)."""
    kwargs.setdefault("settings", SessionSettings(rounds_enabled=True))
    kwargs.setdefault("rounds", tuple(Round(f"r{i}", i) for i in range(1, count + 1)))
    return snapshot(**kwargs)


# =============================================================================
# Scenarios
# =============================================================================

def territory_categories() -> list[Category]:
    return [
        category("territories", "Territories", sort=0),
        formula_category("area", "{Territories} * 2", "Area", sort=1),
        category("bonus", "Bonus", sort=2),
        formula_category("vp", "{Area} + {Bonus}", "Victory Points", sort=3),
    ]


def territory_snapshot(player_id: str = "p1") -> ScoringSnapshot:
    """Territories [3, 2], Bonus [1]: Area 10, Victory Points 11."""
    return snapshot(
        player_ids=(player_id,),
        categories=territory_categories(),
        entries=entries(player_id, "territories", [3, 2]) + entries(player_id, "bonus", [1]),
    )
