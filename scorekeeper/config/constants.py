"""
Centralized constants for the scoring engine.

IMPORTANT: These values are part of the durable template/session format.
- UNCATEGORIZED_BUCKET is the key used for entries without a category
- TOTAL_REFERENCE is the built-in formula reference for the grand total
- STATE_CODES is the single coercion table from state tags to numbers

Changing any of them changes how previously saved data evaluates.
"""

from typing import Dict


# ==================== Buckets & References ====================

# Entries with no categoryId are summed under this key
UNCATEGORIZED_BUCKET = "uncategorized"

# Built-in reference: {total} resolves to the in-progress grand total
TOTAL_REFERENCE = "total"


# ==================== Numeric Tolerances ====================

# Score impacts with |value| <= epsilon do not produce an entry
DEFAULT_SCORE_IMPACT_EPSILON = 0.001

# Rule deltas with |delta| < epsilon do not produce an entry;
# also the tolerance for == / != rule comparisons
DEFAULT_RULE_EPSILON = 0.001

# Maximum nesting of formula-to-formula evaluation before failing safely
DEFAULT_MAX_FORMULA_DEPTH = 32

# Evaluation passes per engine call (1 = one-cycle lag, source behavior)
DEFAULT_SETTLE_PASSES = 1


# ==================== Instance States ====================

STATE_INACTIVE = "inactive"
STATE_ACTIVE = "active"
STATE_OWNED = "owned"
STATE_DISCARDED = "discarded"

# States in which an instance computes values and applies score impact
LIVE_STATES = frozenset({STATE_ACTIVE, STATE_OWNED})

# Numeric coercion for state tags inside formulas
STATE_CODES: Dict[str, int] = {
    STATE_INACTIVE: 0,
    STATE_ACTIVE: 1,
    STATE_OWNED: 2,
    STATE_DISCARDED: -1,
}

# Ownership tags returned by ownership resolution (besides a player id)
OWNER_INACTIVE = "inactive"
OWNER_GLOBAL = "global"


# ==================== Document Format ====================

# Documents stamped with schemaVersion >= this use current key names
CURRENT_SCHEMA_VERSION = 2

SCORE_DIRECTIONS = ("higherWins", "lowerWins")


def validate_score_direction(direction: str) -> str:
    """
    Validate a score direction string.

    Args:
        direction: "higherWins" or "lowerWins"

    Returns:
        The validated direction

    Raises:
        ValueError: If direction is not recognized
    """
    if direction not in SCORE_DIRECTIONS:
        raise ValueError(
            f"Invalid score direction: '{direction}'. "
            f"Expected one of: {', '.join(SCORE_DIRECTIONS)}"
        )
    return direction
