"""
Pytest configuration for scorekeeper tests.

Every test starts with fresh config, logger and evaluator singletons so
environment overrides made by one test never leak into another.
"""

import logging

import pytest

import scorekeeper.formula.evaluation.core as evaluation_core
import scorekeeper.utils.logger as logger_module
from scorekeeper.config import reset_config
from scorekeeper.utils.logger import ScoringLogger, get_logger
from tests.fixtures import SequentialIds


def _reset_singletons() -> None:
    reset_config()
    logger_module._logger = None
    ScoringLogger._instance = None
    ScoringLogger._initialized = False
    evaluation_core._default_evaluator = None


@pytest.fixture(autouse=True)
def fresh_singletons():
    """Reset module-level singletons around each test."""
    _reset_singletons()
    yield
    _reset_singletons()


class _RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def log_messages():
    """Messages logged through the scorekeeper logger during the test."""
    handler = _RecordingHandler()
    main_logger = get_logger().main_logger
    main_logger.addHandler(handler)

    class _Messages:
        def __iter__(self):
            return iter(r.getMessage() for r in handler.records)

        def __len__(self):
            return len(handler.records)

        def matching(self, fragment: str) -> list[str]:
            return [m for m in self if fragment in m]

    yield _Messages()
    main_logger.removeHandler(handler)


@pytest.fixture
def ids() -> SequentialIds:
    """Deterministic id factory."""
    return SequentialIds()
