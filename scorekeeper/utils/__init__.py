"""
Utility modules.
"""

from .logger import get_logger, setup_logger, ScoringLogger
from .helpers import safe_float, new_id, now_ms

__all__ = [
    "get_logger",
    "setup_logger",
    "ScoringLogger",
    "safe_float",
    "new_id",
    "now_ms",
]
