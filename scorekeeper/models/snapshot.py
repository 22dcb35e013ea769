"""
Immutable, indexed view of everything one evaluation reads.

Each entity kind lives in its own table (a tuple) with id indexes built
once at construction. Cross-references are plain ids resolved through the
lookup methods here, never object references, so traversals can guard
cycles with a visited set.

The engine never mutates a snapshot. `merged()` is the caller's
"apply atomically" step: it returns a new snapshot with the engine's
outputs folded in.
"""

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

from ..config.constants import TOTAL_REFERENCE
from .categories import Category
from .definitions import Definition, Instance
from .entries import ScoreEntry
from .rules import ScoringRule
from .session import Mechanic, MechanicType, Round, SessionSettings

if TYPE_CHECKING:
    from ..engine.scoring import EvaluationResult


@dataclass(frozen=True)
class ScoringSnapshot:
    """
    Read-only arena of tables for one evaluation call.

    Attributes:
        player_ids: Players in seat order
        categories: Category table
        entries: Score entry ledger (append-only)
        rules: Scoring rules
        definitions: Object/variable definitions
        instances: Instances of the definitions
        rounds: Rounds (1-based index)
        mechanics: Template mechanics
        settings: Session settings
        current_round_id: Current round; defaults to the latest round when
            rounds are enabled
    """
    player_ids: Tuple[str, ...] = ()
    categories: Tuple[Category, ...] = ()
    entries: Tuple[ScoreEntry, ...] = ()
    rules: Tuple[ScoringRule, ...] = ()
    definitions: Tuple[Definition, ...] = ()
    instances: Tuple[Instance, ...] = ()
    rounds: Tuple[Round, ...] = ()
    mechanics: Tuple[Mechanic, ...] = ()
    settings: SessionSettings = SessionSettings()
    current_round_id: Optional[str] = None

    _categories_by_id: Dict[str, Category] = field(init=False, repr=False, compare=False)
    _categories_by_name: Dict[str, Category] = field(init=False, repr=False, compare=False)
    _definitions_by_id: Dict[str, Definition] = field(init=False, repr=False, compare=False)
    _definitions_by_name: Dict[str, Definition] = field(init=False, repr=False, compare=False)
    _instances_by_key: Dict[Tuple[str, Optional[str]], Instance] = field(
        init=False, repr=False, compare=False
    )
    _rounds_by_id: Dict[str, Round] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        """Coerce tables to tuples and build indexes."""
        for name in (
            "player_ids", "categories", "entries", "rules",
            "definitions", "instances", "rounds", "mechanics",
        ):
            object.__setattr__(self, name, tuple(getattr(self, name)))

        categories_by_id: Dict[str, Category] = {}
        categories_by_name: Dict[str, Category] = {}
        for category in sorted(self.categories, key=lambda c: c.sort_order):
            categories_by_id[category.id] = category
            # First category wins on duplicate names
            categories_by_name.setdefault(category.name.lower(), category)

        definitions_by_id: Dict[str, Definition] = {}
        definitions_by_name: Dict[str, Definition] = {}
        for definition in self.definitions:
            definitions_by_id[definition.id] = definition
            definitions_by_name.setdefault(definition.name.lower(), definition)

        instances_by_key: Dict[Tuple[str, Optional[str]], Instance] = {}
        for instance in self.instances:
            instances_by_key[(instance.definition_id, instance.player_id)] = instance

        object.__setattr__(self, "_categories_by_id", categories_by_id)
        object.__setattr__(self, "_categories_by_name", categories_by_name)
        object.__setattr__(self, "_definitions_by_id", definitions_by_id)
        object.__setattr__(self, "_definitions_by_name", definitions_by_name)
        object.__setattr__(self, "_instances_by_key", instances_by_key)
        object.__setattr__(self, "_rounds_by_id", {r.id: r for r in self.rounds})

    # ==================== Categories ====================

    def category(self, category_id: str) -> Optional[Category]:
        return self._categories_by_id.get(category_id)

    def category_by_name(self, name: str) -> Optional[Category]:
        """Case-insensitive name lookup."""
        return self._categories_by_name.get(name.lower())

    # ==================== Definitions & Instances ====================

    def definition(self, definition_id: str) -> Optional[Definition]:
        return self._definitions_by_id.get(definition_id)

    def definition_by_name(self, name: str) -> Optional[Definition]:
        """Case-insensitive name lookup."""
        return self._definitions_by_name.get(name.lower())

    def find_definition(self, name_or_id: str) -> Optional[Definition]:
        """Name (case-insensitive) first, then raw id."""
        return self.definition_by_name(name_or_id) or self.definition(name_or_id)

    def instance_for(self, definition_id: str, player_id: Optional[str] = None) -> Optional[Instance]:
        """Exact lookup: the player's instance, or the global one when player_id is None."""
        return self._instances_by_key.get((definition_id, player_id))

    # ==================== Rounds & Mechanics ====================

    def round(self, round_id: Optional[str]) -> Optional[Round]:
        if round_id is None:
            return None
        return self._rounds_by_id.get(round_id)

    @property
    def current_round(self) -> Optional[Round]:
        """Explicit current round, else the latest round when rounds are enabled."""
        if self.current_round_id is not None:
            return self.round(self.current_round_id)
        if self.settings.rounds_enabled and self.rounds:
            return max(self.rounds, key=lambda r: r.index)
        return None

    @property
    def phase_enabled(self) -> bool:
        """True when an enabled phase mechanic is declared."""
        return any(m.enabled and m.type == MechanicType.PHASE for m in self.mechanics)

    def known_names(self) -> List[str]:
        """Every name a formula may reference (for validation warnings)."""
        names = [c.name for c in self.categories] + [d.name for d in self.definitions]
        names += [c.id for c in self.categories] + [d.id for d in self.definitions]
        names.append(TOTAL_REFERENCE)
        return names

    # ==================== Merge ====================

    def with_instances(self, updated: Iterable[Instance]) -> "ScoringSnapshot":
        """Return a copy with instances replaced by id (unknown ids are appended)."""
        by_id = {i.id: i for i in updated}
        if not by_id:
            return self
        instances = [by_id.pop(i.id, i) for i in self.instances]
        instances.extend(by_id.values())
        return replace(self, instances=tuple(instances))

    def with_entries(self, new_entries: Iterable[ScoreEntry]) -> "ScoringSnapshot":
        """Return a copy with entries appended."""
        new_entries = tuple(new_entries)
        if not new_entries:
            return self
        return replace(self, entries=self.entries + new_entries)

    def merged(self, result: "EvaluationResult") -> "ScoringSnapshot":
        """Fold an evaluation result back in: replace instances, append entries."""
        return self.with_instances(result.updated_instances).with_entries(result.new_entries)
