"""
Legacy document migration.

Older exports called definitions "variables". Migration renames the legacy
keys to their current names and fills ids that older builders left blank:

    variableDefinitions                    -> objectDefinitions
    {"type": "variable", "variableId": x}  -> {"type": "object", "objectId": x}
    elementVariableDefinitionId            -> elementObjectDefinitionId
    variableDefinitionId                   -> objectDefinitionId
    uiConfig.playerCard.variableIds        -> uiConfig.playerCard.objectIds

Every function returns a new document; inputs are never modified. Running a
migration twice gives the same result as running it once.
Documents stamped with `schemaVersion` >= CURRENT_SCHEMA_VERSION are
already current and are copied unchanged.
"""

from __future__ import annotations

import copy
import re
from typing import Any, Dict, List, Optional

from ..config import CURRENT_SCHEMA_VERSION

LEGACY_DEFINITIONS_KEY = "variableDefinitions"
DEFINITIONS_KEY = "objectDefinitions"


def stable_id(prefix: str, name: Optional[str] = None, index: int = 0) -> str:
    """
    Deterministic id for records saved without one.

    Examples:
        >>> stable_id("object", "Gold Coins")
        'object-gold-coins'
        >>> stable_id("element", index=3)
        'element-3'
    """
    if name:
        slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
        if slug:
            return f"{prefix}-{slug}"
    return f"{prefix}-{index}"


def _migrate_reference(raw: Any) -> Any:
    """Ownership and activeWindow share the same legacy reference shape."""
    if isinstance(raw, dict) and raw.get("type") == "variable":
        return {"type": "object", "objectId": raw.get("variableId")}
    return raw


def migrate_definition(definition: Dict[str, Any], index: int = 0) -> Dict[str, Any]:
    """Migrate one definition dict."""
    result = copy.deepcopy(definition)
    if not (isinstance(result.get("id"), str) and result["id"].strip()):
        result["id"] = stable_id("object", result.get("name"), index)
    if not result.get("name"):
        result["name"] = f"Object {index + 1}"
    if "ownership" in result:
        result["ownership"] = _migrate_reference(result["ownership"])
    if "activeWindow" in result:
        result["activeWindow"] = _migrate_reference(result["activeWindow"])
    if isinstance(result.get("setElementTemplate"), dict):
        result["setElementTemplate"] = migrate_definition(result["setElementTemplate"], index)
    return result


def migrate_set_value(value: Any) -> Any:
    """Rename legacy element keys in an elements-set value."""
    if not isinstance(value, list):
        return value
    migrated: List[Any] = []
    for index, element in enumerate(value):
        if not isinstance(element, dict):
            migrated.append(element)
            continue
        element = dict(element)
        legacy = element.pop("elementVariableDefinitionId", None)
        if not element.get("elementObjectDefinitionId"):
            element["elementObjectDefinitionId"] = legacy or stable_id("element", index=index)
        migrated.append(element)
    return migrated


def migrate_instance(instance: Dict[str, Any], index: int = 0) -> Dict[str, Any]:
    """Migrate one stored instance dict."""
    result = copy.deepcopy(instance)
    legacy = result.pop("variableDefinitionId", None)
    definition_id = result.get("objectDefinitionId") or legacy or stable_id("object", index=index)
    result["objectDefinitionId"] = definition_id
    if not (isinstance(result.get("id"), str) and result["id"]):
        session_id = result.get("sessionId") or "unknown"
        result["id"] = f"{definition_id}-{result.get('playerId') or 'session'}-{session_id}"
    if "value" in result:
        result["value"] = migrate_set_value(result["value"])
    return result


def is_current_schema(document: Dict[str, Any]) -> bool:
    """True when the document declares the current schema version or newer."""
    version = document.get("schemaVersion")
    return (
        isinstance(version, int)
        and not isinstance(version, bool)
        and version >= CURRENT_SCHEMA_VERSION
    )


def migrate_template(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate a template document to the current key names.

    Args:
        document: Parsed template document (any schema version)

    Returns:
        Migrated copy
    """
    result = copy.deepcopy(document)
    if is_current_schema(result):
        return result
    legacy = result.pop(LEGACY_DEFINITIONS_KEY, None)
    definitions = result.get(DEFINITIONS_KEY)
    if definitions is None:
        definitions = legacy or []
    result[DEFINITIONS_KEY] = [
        migrate_definition(d, i) for i, d in enumerate(definitions) if isinstance(d, dict)
    ]

    ui_config = result.get("uiConfig")
    if isinstance(ui_config, dict) and isinstance(ui_config.get("playerCard"), dict):
        player_card = ui_config["playerCard"]
        legacy_ids = player_card.pop("variableIds", None)
        if player_card.get("objectIds") is None:
            player_card["objectIds"] = legacy_ids or []

    return result


def needs_migration(document: Dict[str, Any]) -> bool:
    """True when migrate_template would change the document."""
    return migrate_template(document) != document
