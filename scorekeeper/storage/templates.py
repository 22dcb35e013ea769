"""
Template documents.

A template is the durable, shareable form of a scoring setup: category
templates, rule templates, object definitions, mechanics and default
settings. Documents are kept verbatim (formula strings included) so
exporting an imported document gives back the same text; typed records are
decoded from a migrated copy on demand.

Document shape (JSON or YAML):
```
id, name, version, gameType, description?
defaultSettings:    {roundsEnabled, scoreDirection, allowNegative, minPlayers?, maxPlayers?}
categoryTemplates:  [{id, name, parentId?, sortOrder, displayType, defaultWeight?, defaultFormula?}]
ruleTemplates:      [{id, name, enabled, condition: {...}, action: {...}}]
objectDefinitions:  [{id, name, type, ownership, activeWindow, calculation?, scoreImpact?, ...}]
mechanics:          [{id, type, name, enabled, config}]
```

Usage:
    template = load_template("templates/catan.yml")
    errors = validate_template(template)
    snapshot = instantiate_session(template, ["p1", "p2", "p3"])
"""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

import yaml

from ..formula.errors import TemplateFormatError
from ..formula.validator import detect_formula_cycles, validate_formula
from ..engine.values import materialize_instances
from ..models.categories import Category, DisplayType
from ..models.definitions import Definition
from ..models.rules import RuleAction, RuleCondition, ScoringRule
from ..models.session import Mechanic, Round, SessionSettings
from ..models.snapshot import ScoringSnapshot
from ..utils.helpers import new_id
from ..utils.logger import get_logger
from .migrations import DEFINITIONS_KEY, migrate_template

T = TypeVar("T")

REQUIRED_FIELDS = ("id", "name", "version")
YAML_SUFFIXES = (".yml", ".yaml")


class Template:
    """
    A template document with typed views.

    Attributes:
        document: The document exactly as imported (what export writes back)
    """

    def __init__(self, document: Dict[str, Any]):
        if not isinstance(document, dict):
            raise TemplateFormatError(
                f"Template document must be an object, got {type(document).__name__}"
            )
        self.document = document
        self._migrated = migrate_template(document)

    @property
    def migrated(self) -> Dict[str, Any]:
        """The document with legacy keys renamed (what typed views decode)."""
        return self._migrated

    def __repr__(self) -> str:
        return f"Template(id={self.id!r}, name={self.name!r}, version={self.version!r})"

    # ==================== Header ====================

    @property
    def id(self) -> str:
        return self.document.get("id", "")

    @property
    def name(self) -> str:
        return self.document.get("name", "")

    @property
    def version(self) -> str:
        return self.document.get("version", "")

    @property
    def game_type(self) -> str:
        return self.document.get("gameType", "")

    # ==================== Typed Views ====================

    @property
    def settings(self) -> SessionSettings:
        raw = self._migrated.get("defaultSettings") or {}
        return _decode("defaultSettings", 0, SessionSettings.from_dict, raw)

    @property
    def categories(self) -> List[Category]:
        return _decode_all("Category template", self._migrated.get("categoryTemplates"), Category.from_dict)

    @property
    def rules(self) -> List[ScoringRule]:
        return _decode_all("Rule template", self._migrated.get("ruleTemplates"), ScoringRule.from_dict)

    @property
    def definitions(self) -> List[Definition]:
        return _decode_all("Object definition", self._migrated.get(DEFINITIONS_KEY), Definition.from_dict)

    @property
    def mechanics(self) -> List[Mechanic]:
        return _decode_all("Mechanic", self._migrated.get("mechanics"), Mechanic.from_dict)

    @classmethod
    def from_records(
        cls,
        id: str,
        name: str,
        version: str = "1.0.0",
        *,
        game_type: str = "custom",
        settings: Optional[SessionSettings] = None,
        categories: Iterable[Category] = (),
        rules: Iterable[ScoringRule] = (),
        definitions: Iterable[Definition] = (),
        mechanics: Iterable[Mechanic] = (),
    ) -> "Template":
        """Build a template document from typed records."""
        return cls({
            "id": id,
            "name": name,
            "version": version,
            "gameType": game_type,
            "defaultSettings": (settings or SessionSettings()).to_dict(),
            "categoryTemplates": [c.to_dict() for c in categories],
            "ruleTemplates": [r.to_dict() for r in rules],
            DEFINITIONS_KEY: [d.to_dict() for d in definitions],
            "mechanics": [m.to_dict() for m in mechanics],
        })


def _decode(kind: str, index: int, decoder: Callable[[Dict[str, Any]], T], raw: Any) -> T:
    if not isinstance(raw, dict):
        raise TemplateFormatError(f"{kind} {index} must be an object")
    try:
        return decoder(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise TemplateFormatError(f"{kind} {index} is invalid: {e}") from e


def _decode_all(kind: str, raw: Any, decoder: Callable[[Dict[str, Any]], T]) -> List[T]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise TemplateFormatError(f"{kind}s must be a list")
    return [_decode(kind, i, decoder, item) for i, item in enumerate(raw)]


# =============================================================================
# Import / Export
# =============================================================================

def _from_document(document: Any, source: str) -> Template:
    if not isinstance(document, dict):
        raise TemplateFormatError(f"Empty or invalid template document in {source}")
    missing = [f for f in REQUIRED_FIELDS if not document.get(f)]
    if missing:
        raise TemplateFormatError(
            f"Template in {source} is missing required fields: {', '.join(missing)}"
        )
    return Template(document)


def import_template(text: str) -> Template:
    """
    Parse a JSON template document.

    Raises:
        TemplateFormatError: Not JSON, not an object, or missing id/name/version
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise TemplateFormatError(f"Template is not valid JSON: {e}") from e
    return _from_document(document, "text")


def export_template(template: Template) -> str:
    """Canonical JSON text (2-space indent) of the template document."""
    return json.dumps(template.document, indent=2, ensure_ascii=False)


def load_template(path: str | Path) -> Template:
    """
    Load a template from a .json, .yml or .yaml file.

    Raises:
        FileNotFoundError: If the file does not exist
        TemplateFormatError: Unsupported suffix or malformed document
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".json",) + YAML_SUFFIXES:
        raise TemplateFormatError(f"Unsupported template file type: {path.suffix or path.name}")

    with open(path, "r", encoding="utf-8") as f:
        text = f.read()

    if suffix == ".json":
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise TemplateFormatError(f"Invalid JSON in {path}: {e}") from e
    else:
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise TemplateFormatError(f"Invalid YAML in {path}: {e}") from e

    template = _from_document(document, str(path))
    get_logger().info(f"[TEMPLATE] Loaded {template.name} v{template.version} from {path}")
    return template


def dump_template_yaml(template: Template, path: str | Path | None = None) -> str:
    """
    Serialize the template document as YAML, optionally writing it to `path`.

    Returns:
        The YAML text
    """
    text = yaml.dump(
        template.document,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
    )
    if path is not None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            f.write(text)
    return text


# =============================================================================
# Validation
# =============================================================================

def _check_parents(categories: Sequence[Dict[str, Any]]) -> List[str]:
    errors: List[str] = []
    parents = {c.get("id"): c.get("parentId") for c in categories if c.get("id")}
    for category_id, parent_id in parents.items():
        if parent_id is None:
            continue
        if parent_id not in parents:
            errors.append(f"Category template {category_id} has unknown parent {parent_id}")
            continue
        seen = {category_id}
        current = parent_id
        while current is not None and current in parents:
            if current in seen:
                errors.append(f"Category template {category_id} has a circular parent chain")
                break
            seen.add(current)
            current = parents[current]
    return errors


def _check_formula(label: str, formula: Any, known_names: List[str]) -> Optional[str]:
    if not isinstance(formula, str):
        return f"{label} formula must be text"
    result = validate_formula(formula, known_names)
    if not result.valid:
        return f"{label} has an invalid formula: {result.error}"
    return None


def validate_template(template: Template) -> List[str]:
    """
    Check a template for structural problems.

    Returns:
        Error messages (empty when the template is valid). Unknown formula
        references are not errors: they evaluate as 0.
    """
    document = template.migrated
    errors: List[str] = []

    if not document.get("id"):
        errors.append("Template must have an ID")
    if not str(document.get("name") or "").strip():
        errors.append("Template must have a name")
    if not document.get("version"):
        errors.append("Template must have a version")
    if not document.get("gameType"):
        errors.append("Template must have a game type")
    if not document.get("defaultSettings"):
        errors.append("Template must have default settings")
    else:
        try:
            SessionSettings.from_dict(document["defaultSettings"])
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            errors.append(f"Default settings are invalid: {e}")

    categories = [c for c in document.get("categoryTemplates") or [] if isinstance(c, dict)]
    rules = [r for r in document.get("ruleTemplates") or [] if isinstance(r, dict)]
    definitions = [d for d in document.get(DEFINITIONS_KEY) or [] if isinstance(d, dict)]

    known_names: List[str] = ["total"]
    for record in categories + definitions:
        for key in ("name", "id"):
            if record.get(key):
                known_names.append(str(record[key]))

    seen_ids: set = set()
    formulas: Dict[str, str] = {}

    for index, raw in enumerate(categories):
        if not raw.get("id"):
            errors.append(f"Category template {index} missing ID")
        elif raw["id"] in seen_ids:
            errors.append(f"Category template {index} has duplicate ID {raw['id']}")
        seen_ids.add(raw.get("id"))
        if not raw.get("name"):
            errors.append(f"Category template {index} missing name")
        try:
            category = Category.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            errors.append(f"Category template {index} is invalid: {e}")
            continue
        if category.display_type == DisplayType.FORMULA and category.formula:
            error = _check_formula(f"Category {category.name}", category.formula, known_names)
            if error:
                errors.append(error)
            else:
                formulas[category.name] = category.formula

    errors.extend(_check_parents(categories))
    category_ids = {c.get("id") for c in categories}

    for index, raw in enumerate(rules):
        if not raw.get("id"):
            errors.append(f"Rule template {index} missing ID")
        if not raw.get("name"):
            errors.append(f"Rule template {index} missing name")
        if not raw.get("condition"):
            errors.append(f"Rule template {index} missing condition")
        if not raw.get("action"):
            errors.append(f"Rule template {index} missing action")
        if not raw.get("condition") or not raw.get("action"):
            continue
        try:
            RuleCondition.from_dict(raw["condition"])
            action = RuleAction.from_dict(raw["action"])
        except (KeyError, TypeError, ValueError) as e:
            errors.append(f"Rule template {index} is invalid: {e}")
            continue
        if action.target_category_id and action.target_category_id not in category_ids:
            errors.append(
                f"Rule template {index} targets unknown category {action.target_category_id}"
            )

    definition_ids = {d.get("id") for d in definitions}
    for index, raw in enumerate(definitions):
        if not raw.get("id"):
            errors.append(f"Object definition {index} missing ID")
        if not raw.get("name"):
            errors.append(f"Object definition {index} missing name")
        if not raw.get("type"):
            errors.append(f"Object definition {index} missing type")
        try:
            definition = Definition.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            errors.append(f"Object definition {index} is invalid: {e}")
            continue
        for ref in (definition.ownership.definition_id, definition.active_window.definition_id):
            if ref is not None and ref not in definition_ids:
                errors.append(f"Object definition {definition.name} refers to unknown object {ref}")
        if definition.calculation:
            error = _check_formula(f"Object {definition.name}", definition.calculation, known_names)
            if error:
                errors.append(error)
            else:
                formulas.setdefault(definition.name, definition.calculation)
        if definition.score_impact:
            error = _check_formula(
                f"Object {definition.name} score impact", definition.score_impact, known_names
            )
            if error:
                errors.append(error)

    errors.extend(detect_formula_cycles(formulas))
    return errors


def validate_template_compatibility(template: Template, player_count: int) -> List[str]:
    """
    Check a player count against the template's limits.

    Returns:
        Error messages (empty when compatible)
    """
    settings = template.settings
    errors: List[str] = []
    if settings.min_players and player_count < settings.min_players:
        errors.append(f"Template requires at least {settings.min_players} players")
    if settings.max_players and player_count > settings.max_players:
        errors.append(f"Template supports at most {settings.max_players} players")
    return errors


# =============================================================================
# Session Instantiation
# =============================================================================

def instantiate_session(
    template: Template,
    player_ids: Sequence[str],
    id_factory: Callable[[], str] = new_id,
    session_id: Optional[str] = None,
) -> ScoringSnapshot:
    """
    Clone a template into the tables of a fresh session.

    - Categories get new ids, parents first; parent links are remapped.
      Categories whose parent chain never reaches a root are not cloned.
    - Enabled rules get new ids; category ids in conditions and targets are
      remapped. A condition id that is not a template category is kept as
      written (it may name a definition); an unknown target is dropped.
    - Instances are materialized from the definitions per ownership rule.
    - Round 1 is created when rounds are enabled.

    Raises:
        TemplateFormatError: If a record in the document cannot be decoded
    """
    session_id = session_id or id_factory()
    player_ids = tuple(player_ids)
    settings = template.settings
    logger = get_logger()

    for problem in validate_template_compatibility(template, len(player_ids)):
        logger.warning(f"[TEMPLATE] {template.name} | {problem}")

    template_categories = template.categories
    children: Dict[Optional[str], List[Category]] = {}
    for category in template_categories:
        children.setdefault(category.parent_id, []).append(category)

    category_map: Dict[str, str] = {}
    categories: List[Category] = []

    def _clone(parent_template_id: Optional[str], parent_id: Optional[str]) -> None:
        for template_category in sorted(children.get(parent_template_id, ()), key=lambda c: c.sort_order):
            if template_category.id in category_map:
                continue
            category_id = id_factory()
            category_map[template_category.id] = category_id
            categories.append(Category(
                id=category_id,
                name=template_category.name,
                parent_id=parent_id,
                sort_order=template_category.sort_order,
                display_type=template_category.display_type,
                weight=template_category.weight,
                formula=template_category.formula,
            ))
            _clone(template_category.id, category_id)

    _clone(None, None)

    rules: List[ScoringRule] = []
    for rule in template.rules:
        if not rule.enabled:
            continue
        condition = rule.condition
        if condition.category_id is not None:
            condition = replace(
                condition,
                category_id=category_map.get(condition.category_id, condition.category_id),
            )
        action = rule.action
        if action.target_category_id is not None:
            action = replace(action, target_category_id=category_map.get(action.target_category_id))
        rules.append(ScoringRule(
            id=id_factory(),
            name=rule.name,
            condition=condition,
            action=action,
            enabled=True,
        ))

    definitions = template.definitions
    instances = materialize_instances(definitions, player_ids, session_id)

    rounds: List[Round] = []
    if settings.rounds_enabled:
        rounds.append(Round(id=id_factory(), index=1, label="Round 1"))

    logger.info(
        f"[TEMPLATE] Instantiated {template.name} | session={session_id} | "
        f"players={len(player_ids)} | categories={len(categories)} | rules={len(rules)} | "
        f"instances={len(instances)}"
    )

    return ScoringSnapshot(
        player_ids=player_ids,
        categories=tuple(categories),
        rules=tuple(rules),
        definitions=tuple(definitions),
        instances=tuple(instances),
        rounds=tuple(rounds),
        mechanics=tuple(template.mechanics),
        settings=settings,
        current_round_id=rounds[0].id if rounds else None,
    )
