"""
Template documents and legacy migration.
"""

from .migrations import (
    is_current_schema,
    migrate_definition,
    migrate_instance,
    migrate_set_value,
    migrate_template,
    needs_migration,
    stable_id,
)
from .templates import (
    Template,
    dump_template_yaml,
    export_template,
    import_template,
    instantiate_session,
    load_template,
    validate_template,
    validate_template_compatibility,
)

__all__ = [
    # Migration
    "is_current_schema",
    "migrate_definition",
    "migrate_instance",
    "migrate_set_value",
    "migrate_template",
    "needs_migration",
    "stable_id",
    # Templates
    "Template",
    "dump_template_yaml",
    "export_template",
    "import_template",
    "instantiate_session",
    "load_template",
    "validate_template",
    "validate_template_compatibility",
]
