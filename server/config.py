"""
Centralized configuration for the Gin Rummy server.

Configuration is loaded from (in order of precedence):
1. Environment variables
2. .env file (if exists)
3. Default values

Usage:
    from config import config
    print(config.PORT)
    print(config.rules.KNOCK_THRESHOLD)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.environ.get(key, default)


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean environment variable."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


def get_env_int(key: str, default: int = 0) -> int:
    """Get integer environment variable."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get float environment variable."""
    try:
        return float(os.environ.get(key, str(default)))
    except ValueError:
        return default


@dataclass
class RuleValues:
    """Gin rule numbers - the single source of truth."""
    HAND_SIZE: int = 10
    KNOCK_THRESHOLD: int = 10
    GIN_BONUS: int = 25
    UNDERCUT_BONUS: int = 25

    def to_dict(self) -> dict[str, int]:
        return {
            "hand_size": self.HAND_SIZE,
            "knock_threshold": self.KNOCK_THRESHOLD,
            "gin_bonus": self.GIN_BONUS,
            "undercut_bonus": self.UNDERCUT_BONUS,
        }


@dataclass
class ServerConfig:
    """Server configuration."""
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    # Session storage (empty REDIS_URL keeps sessions in process memory)
    REDIS_URL: str = ""
    SESSION_TTL_SECONDS: int = 3600

    # Room settings
    MIN_PLAYERS: int = 2
    MAX_PLAYERS: int = 4
    ROOM_CODE_LENGTH: int = 6

    # CPU scheduling (seconds)
    CPU_TURN_DELAY: float = 0.5
    CPU_DISCARD_DELAY: float = 1.0

    rules: RuleValues = field(default_factory=RuleValues)

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """Load configuration from environment variables."""
        return cls(
            HOST=get_env("HOST", "0.0.0.0"),
            PORT=get_env_int("PORT", 8000),
            DEBUG=get_env_bool("DEBUG", False),
            LOG_LEVEL=get_env("LOG_LEVEL", "INFO"),
            ENVIRONMENT=get_env("ENVIRONMENT", "development"),
            REDIS_URL=get_env("REDIS_URL", ""),
            SESSION_TTL_SECONDS=get_env_int("SESSION_TTL_SECONDS", 3600),
            MIN_PLAYERS=get_env_int("MIN_PLAYERS", 2),
            MAX_PLAYERS=get_env_int("MAX_PLAYERS", 4),
            ROOM_CODE_LENGTH=get_env_int("ROOM_CODE_LENGTH", 6),
            CPU_TURN_DELAY=get_env_float("CPU_TURN_DELAY", 0.5),
            CPU_DISCARD_DELAY=get_env_float("CPU_DISCARD_DELAY", 1.0),
            rules=RuleValues(
                HAND_SIZE=get_env_int("RULE_HAND_SIZE", 10),
                KNOCK_THRESHOLD=get_env_int("RULE_KNOCK_THRESHOLD", 10),
                GIN_BONUS=get_env_int("RULE_GIN_BONUS", 25),
                UNDERCUT_BONUS=get_env_int("RULE_UNDERCUT_BONUS", 25),
            ),
        )


# Global config instance - loaded once at module import
config = ServerConfig.from_env()


def reload_config() -> ServerConfig:
    """Reload configuration from environment (useful for testing)."""
    global config
    config = ServerConfig.from_env()
    return config
