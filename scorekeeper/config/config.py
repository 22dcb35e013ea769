"""
Configuration management for the scoring engine.
Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_SCORE_IMPACT_EPSILON,
    DEFAULT_RULE_EPSILON,
    DEFAULT_MAX_FORMULA_DEPTH,
    DEFAULT_SETTLE_PASSES,
)


@dataclass
class EngineConfig:
    """
    Evaluation engine configuration.

    score_impact_epsilon:
        Score impacts at or below this magnitude are dropped.
    rule_epsilon:
        Rule deltas below this magnitude are dropped; also the tolerance
        used by == and != rule comparisons.
    max_formula_depth:
        Nesting limit for formula-to-formula evaluation. Exceeding it raises
        CircularReferenceError, which callers convert to a fallback value.
    settle_passes:
        1 keeps the one-cycle lag between object values and category totals.
        Values above 1 re-run totals and object evaluation until instances
        stop changing (at most this many passes).
    warn_unknown_references:
        Log a warning when a formula reference resolves to nothing.
    """
    score_impact_epsilon: float = DEFAULT_SCORE_IMPACT_EPSILON
    rule_epsilon: float = DEFAULT_RULE_EPSILON
    max_formula_depth: int = DEFAULT_MAX_FORMULA_DEPTH
    settle_passes: int = DEFAULT_SETTLE_PASSES
    warn_unknown_references: bool = True

    def __post_init__(self):
        """Validate config."""
        if self.score_impact_epsilon < 0:
            raise ValueError(
                f"score_impact_epsilon must be >= 0. Got: {self.score_impact_epsilon}"
            )
        if self.rule_epsilon < 0:
            raise ValueError(f"rule_epsilon must be >= 0. Got: {self.rule_epsilon}")
        if self.max_formula_depth <= 0:
            raise ValueError(
                f"max_formula_depth must be positive. Got: {self.max_formula_depth}"
            )
        if self.settle_passes < 1:
            raise ValueError(f"settle_passes must be >= 1. Got: {self.settle_passes}")


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = False
    log_errors_separately: bool = True


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Central configuration manager.

    Loads configuration from environment variables and provides
    typed access to all settings.
    """

    _instance: Optional['Config'] = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, env_file: str = ".env"):
        if self._initialized:
            return

        # Later files override earlier ones
        for env_name in [".env", env_file]:
            env_path = Path(env_name)
            if env_path.exists():
                load_dotenv(env_path, override=True)

        self.engine = self._load_engine_config()
        self.log = self._load_log_config()

        self._initialized = True

    def _load_engine_config(self) -> EngineConfig:
        """Load engine configuration from environment."""
        return EngineConfig(
            score_impact_epsilon=float(
                os.getenv("SCOREKEEPER_SCORE_EPSILON", str(DEFAULT_SCORE_IMPACT_EPSILON))
            ),
            rule_epsilon=float(
                os.getenv("SCOREKEEPER_RULE_EPSILON", str(DEFAULT_RULE_EPSILON))
            ),
            max_formula_depth=int(
                os.getenv("SCOREKEEPER_MAX_FORMULA_DEPTH", str(DEFAULT_MAX_FORMULA_DEPTH))
            ),
            settle_passes=int(
                os.getenv("SCOREKEEPER_SETTLE_PASSES", str(DEFAULT_SETTLE_PASSES))
            ),
            warn_unknown_references=_env_bool("SCOREKEEPER_WARN_UNKNOWN_REFS", "true"),
        )

    def _load_log_config(self) -> LogConfig:
        """Load logging configuration from environment."""
        return LogConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            log_to_file=_env_bool("LOG_TO_FILE", "false"),
            log_errors_separately=_env_bool("LOG_ERRORS_SEPARATELY", "true"),
        )

    def summary(self) -> str:
        """Get a one-line configuration summary for logging."""
        return (
            f"epsilon={self.engine.score_impact_epsilon} "
            f"rule_epsilon={self.engine.rule_epsilon} "
            f"max_depth={self.engine.max_formula_depth} "
            f"settle_passes={self.engine.settle_passes} "
            f"log_level={self.log.level}"
        )


def get_config() -> Config:
    """Get the global configuration instance."""
    return Config()


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it."""
    Config._instance = None
