"""
Tests for configuration, constants and logging setup.
"""

import logging

import pytest

from scorekeeper.config import (
    CURRENT_SCHEMA_VERSION,
    Config,
    EngineConfig,
    STATE_CODES,
    get_config,
    reset_config,
    validate_score_direction,
)
from scorekeeper.utils import get_logger, safe_float


class TestEngineConfig:
    """EngineConfig defaults and validation."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.score_impact_epsilon == 0.001
        assert config.rule_epsilon == 0.001
        assert config.max_formula_depth == 32
        assert config.settle_passes == 1
        assert config.warn_unknown_references is True

    @pytest.mark.parametrize("kwargs,fragment", [
        ({"score_impact_epsilon": -0.1}, "score_impact_epsilon must be >= 0"),
        ({"rule_epsilon": -1}, "rule_epsilon must be >= 0"),
        ({"max_formula_depth": 0}, "max_formula_depth must be positive"),
        ({"settle_passes": 0}, "settle_passes must be >= 1"),
    ])
    def test_invalid_values(self, kwargs, fragment):
        with pytest.raises(ValueError, match=fragment):
            EngineConfig(**kwargs)


class TestEnvironment:
    """Config loads overrides from the environment and .env files."""

    def test_singleton(self):
        assert get_config() is get_config()
        assert Config() is get_config()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SCOREKEEPER_SCORE_EPSILON", "0.5")
        monkeypatch.setenv("SCOREKEEPER_RULE_EPSILON", "0.01")
        monkeypatch.setenv("SCOREKEEPER_MAX_FORMULA_DEPTH", "4")
        monkeypatch.setenv("SCOREKEEPER_SETTLE_PASSES", "3")
        monkeypatch.setenv("SCOREKEEPER_WARN_UNKNOWN_REFS", "off")
        reset_config()
        engine = get_config().engine
        assert engine.score_impact_epsilon == 0.5
        assert engine.rule_epsilon == 0.01
        assert engine.max_formula_depth == 4
        assert engine.settle_passes == 3
        assert engine.warn_unknown_references is False

    def test_reset_reloads(self, monkeypatch):
        assert get_config().engine.settle_passes == 1
        monkeypatch.setenv("SCOREKEEPER_SETTLE_PASSES", "2")
        assert get_config().engine.settle_passes == 1
        reset_config()
        assert get_config().engine.settle_passes == 2

    def test_invalid_env_value_is_rejected(self, monkeypatch):
        monkeypatch.setenv("SCOREKEEPER_SETTLE_PASSES", "0")
        with pytest.raises(ValueError, match="settle_passes"):
            get_config()

    def test_dotenv_file(self, monkeypatch, tmp_path):
        monkeypatch.delenv("SCOREKEEPER_RULE_EPSILON", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("SCOREKEEPER_RULE_EPSILON=0.25\n", encoding="utf-8")
        assert get_config().engine.rule_epsilon == 0.25

    def test_log_config(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_TO_FILE", "yes")
        log = get_config().log
        assert log.level == "DEBUG"
        assert log.log_to_file is True

    def test_summary(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        summary = get_config().summary()
        assert "settle_passes=1" in summary
        assert "log_level=WARNING" in summary


class TestLogger:
    """Logger built from Config.log."""

    def test_level_from_config(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        assert get_logger().main_logger.level == logging.DEBUG

    def test_logger_is_shared(self):
        assert get_logger() is get_logger()

    def test_file_output(self, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_TO_FILE", "true")
        monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
        logger = get_logger()
        logger.info("[TEST] written to file")
        for handler in logger.main_logger.handlers:
            handler.flush()
        [log_file] = (tmp_path / "logs").glob("scorekeeper_*.log")
        assert "[TEST] written to file" in log_file.read_text(encoding="utf-8")
        for handler in list(logger.main_logger.handlers) + list(logger.error_logger.handlers):
            handler.close()

    def test_formula_failure_format(self, log_messages):
        get_logger().formula_failure("RULE", "Cap", "{A} +", ValueError("boom"), player="p1")
        assert log_messages.matching("[FORMULA:RULE]") == [
            "[FORMULA:RULE] | Cap | formula='{A} +' | error=boom | player=p1"
        ]


class TestConstantsAndHelpers:
    """Durable constants and document helpers."""

    def test_schema_version(self):
        assert CURRENT_SCHEMA_VERSION == 2

    def test_state_codes(self):
        assert STATE_CODES == {"inactive": 0, "active": 1, "owned": 2, "discarded": -1}

    def test_score_direction(self):
        assert validate_score_direction("lowerWins") == "lowerWins"
        with pytest.raises(ValueError, match="Invalid score direction"):
            validate_score_direction("closestWins")

    @pytest.mark.parametrize("value,expected", [
        ("2.5", 2.5),
        ("", 0.0),
        (None, 0.0),
        (True, 0.0),
        ("abc", 0.0),
        (float("inf"), 0.0),
        (3, 3.0),
    ])
    def test_safe_float(self, value, expected):
        assert safe_float(value) == expected
