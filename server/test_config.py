"""
Tests for environment configuration and structured logging.

Run with: pytest test_config.py -v
"""

import json
import logging

import config as config_module
from config import ServerConfig, get_env_bool, get_env_int
from logging_config import JSONFormatter, get_logger, room_code_var


# =============================================================================
# Configuration
# =============================================================================

class TestConfig:

    def test_defaults(self, monkeypatch):
        for key in ("REDIS_URL", "SESSION_TTL_SECONDS", "RULE_KNOCK_THRESHOLD", "CPU_TURN_DELAY"):
            monkeypatch.delenv(key, raising=False)
        cfg = ServerConfig.from_env()
        assert cfg.REDIS_URL == ""
        assert cfg.SESSION_TTL_SECONDS == 3600
        assert cfg.ROOM_CODE_LENGTH == 6
        assert cfg.rules.to_dict() == {
            "hand_size": 10,
            "knock_threshold": 10,
            "gin_bonus": 25,
            "undercut_bonus": 25,
        }

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("REDIS_URL", "redis://cache:6379")
        monkeypatch.setenv("CPU_TURN_DELAY", "0.1")
        monkeypatch.setenv("RULE_GIN_BONUS", "20")
        try:
            cfg = config_module.reload_config()
            assert cfg.REDIS_URL == "redis://cache:6379"
            assert cfg.CPU_TURN_DELAY == 0.1
            assert cfg.rules.GIN_BONUS == 20
        finally:
            monkeypatch.undo()
            config_module.reload_config()

    def test_bad_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("PORT", "eighty")
        monkeypatch.setenv("DEBUG", "maybe")
        assert get_env_int("PORT", 8000) == 8000
        assert get_env_bool("DEBUG", False) is False


# =============================================================================
# Logging
# =============================================================================

def make_record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("gin.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:

    def test_json_formatter_uses_room_context(self):
        token = room_code_var.set("482913")
        try:
            data = json.loads(JSONFormatter().format(make_record()))
        finally:
            room_code_var.reset(token)
        assert data["message"] == "hello"
        assert data["room_code"] == "482913"
        assert "source" not in data

    def test_explicit_extra_wins(self):
        token = room_code_var.set("111111")
        try:
            data = json.loads(JSONFormatter().format(make_record(room_code="222222", action="knock")))
        finally:
            room_code_var.reset(token)
        assert data["room_code"] == "222222"
        assert data["action"] == "knock"

    def test_context_logger_merges_extra(self, caplog):
        logger = get_logger("gin.test").with_context(room_code="482913")
        with caplog.at_level(logging.INFO, logger="gin.test"):
            logger.with_context(action="gin").info("declared")
        record = caplog.records[-1]
        assert record.room_code == "482913"
        assert record.action == "gin"
