"""
Configuration management.
"""

from .config import (
    Config,
    get_config,
    reset_config,
    EngineConfig,
    LogConfig,
)

from .constants import (
    CURRENT_SCHEMA_VERSION,
    UNCATEGORIZED_BUCKET,
    TOTAL_REFERENCE,
    STATE_CODES,
    LIVE_STATES,
    validate_score_direction,
)

__all__ = [
    # Config classes
    "Config",
    "get_config",
    "reset_config",
    "EngineConfig",
    "LogConfig",
    # Constants
    "CURRENT_SCHEMA_VERSION",
    "UNCATEGORIZED_BUCKET",
    "TOTAL_REFERENCE",
    "STATE_CODES",
    "LIVE_STATES",
    "validate_score_direction",
]
