"""
Logging system for the scoring engine.
Provides structured, human-readable logs with console and optional file output.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional


# ANSI color codes for terminal output
class Colors:
    RESET = "\033[0m"
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    WHITE = "\033[97m"
    BOLD = "\033[1m"


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.CYAN,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        # Work on a copy so file handlers keep the uncolored record
        record = logging.makeLogRecord(record.__dict__)
        record.levelname = f"{color}{record.levelname}{Colors.RESET}"
        record.msg = f"{color}{record.msg}{Colors.RESET}"
        return super().format(record)


class ScoringLogger:
    """
    Central logging system for the scoring engine.

    Features:
    - Console output with colors
    - Optional dated file output, with errors in a separate file
    - Structured helpers for formula failures, rule firings and score impacts
    """

    _instance: Optional['ScoringLogger'] = None
    _initialized: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(
        self,
        log_dir: str = "logs",
        log_level: str = "INFO",
        log_to_file: bool = False,
        log_errors_separately: bool = True,
    ):
        if ScoringLogger._initialized:
            return

        self.log_dir = Path(log_dir)
        self.log_to_file = log_to_file
        if log_to_file:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.main_logger = self._create_logger("scorekeeper", log_level)
        self.error_logger = self._create_logger(
            "scorekeeper.errors",
            "ERROR",
            "errors" if log_errors_separately else None,
        )

        ScoringLogger._initialized = True

    def _create_logger(self, name: str, level: str, file_prefix: str = None) -> logging.Logger:
        """Create a configured logger instance."""
        logger = logging.getLogger(name)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        logger.handlers.clear()
        logger.propagate = False

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(ColoredFormatter(
            "%(asctime)s | %(levelname)s | %(message)s",
            datefmt="%H:%M:%S"
        ))
        logger.addHandler(console_handler)

        if self.log_to_file:
            prefix = file_prefix or "scorekeeper"
            log_file = self.log_dir / f"{prefix}_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S"
            ))
            logger.addHandler(file_handler)

        return logger

    def info(self, msg: str, *args, **kwargs):
        """Log info message."""
        self.main_logger.info(msg, *args, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        """Log debug message."""
        self.main_logger.debug(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """Log warning message."""
        self.main_logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """Log error message."""
        self.main_logger.error(msg, *args, **kwargs)
        self.error_logger.error(msg, *args, **kwargs)

    def formula_failure(self, scope: str, name: str, formula: str, error: Exception, **kwargs):
        """
        Log a contained formula failure.

        Args:
            scope: CATEGORY, CALCULATION, SCORE_IMPACT or RULE
            name: Name of the category/definition/rule that owns the formula
            formula: The formula text as authored
            error: The exception that was caught
            **kwargs: Additional context (player, fallback value, ...)
        """
        parts = [
            f"[FORMULA:{scope}]",
            name,
            f"formula={formula!r}",
            f"error={error}",
        ]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")

        self.main_logger.warning(" | ".join(parts))

    def unknown_reference(self, name: str, **kwargs):
        """Log a reference that resolved to nothing (evaluates as 0)."""
        parts = ["[UnknownReferenceWarning]", f"reference={{{name}}}", "resolved=0"]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        self.main_logger.warning(" | ".join(parts))

    def rule_fired(self, rule_name: str, player_id: str, delta: float, **kwargs):
        """
        Log a rule whose condition matched and produced a correction entry.

        Args:
            rule_name: Rule name
            player_id: Player the entry is attributed to
            delta: Additive correction value
            **kwargs: Additional fields
        """
        parts = [
            "[RULE]",
            rule_name,
            f"player={player_id}",
            f"delta={delta:+.4f}",
        ]
        for key, value in kwargs.items():
            parts.append(f"{key}={value}")
        self.main_logger.debug(" | ".join(parts))

    def score_impact(self, definition_name: str, player_id: str, value: float, **kwargs):
        """Log a synthesized score-impact entry."""
        parts = [
            "[SCORE_IMPACT]",
            definition_name,
            f"player={player_id}",
            f"value={value:+.4f}",
        ]
        for key, value_ in kwargs.items():
            parts.append(f"{key}={value_}")
        self.main_logger.debug(" | ".join(parts))


# Global logger instance
_logger: Optional[ScoringLogger] = None


def get_logger() -> ScoringLogger:
    """Get or create the global logger instance (settings from Config.log)."""
    global _logger
    if _logger is None:
        from ..config import get_config

        log_config = get_config().log
        _logger = ScoringLogger(
            log_dir=log_config.log_dir,
            log_level=log_config.level,
            log_to_file=log_config.log_to_file,
            log_errors_separately=log_config.log_errors_separately,
        )
    return _logger


def setup_logger(
    log_dir: str = "logs",
    log_level: str = "INFO",
    log_to_file: bool = False,
) -> ScoringLogger:
    """Initialize the logger with custom settings."""
    global _logger
    ScoringLogger._initialized = False
    ScoringLogger._instance = None
    _logger = ScoringLogger(log_dir, log_level, log_to_file)
    return _logger
