"""
Structured logging configuration for the Gin Rummy server.

Provides:
- JSONFormatter for production (one JSON object per line)
- Human-readable formatter for development
- Session-scoped context (room_code, player_id) via context variables
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Set by the session actor while it processes a command
room_code_var: ContextVar[Optional[str]] = ContextVar("room_code", default=None)
player_id_var: ContextVar[Optional[str]] = ContextVar("player_id", default=None)

_CONTEXT_FIELDS = ("room_code", "player_id", "action", "turn_number")


def _context_value(record: logging.LogRecord, name: str) -> Optional[str]:
    explicit = getattr(record, name, None)
    if explicit:
        return explicit
    if name == "room_code":
        return room_code_var.get()
    if name == "player_id":
        return player_id_var.get()
    return None


class JSONFormatter(logging.Formatter):
    """
    Format logs as JSON for production log aggregation.

    Context fields are taken from the record's ``extra`` first and fall
    back to the session context variables.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for name in _CONTEXT_FIELDS:
            value = _context_value(record, name)
            if value is not None:
                log_data[name] = value

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable, colourised formatter for local runs."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        timestamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        context_parts = []
        room_code = _context_value(record, "room_code")
        if room_code:
            context_parts.append(f"room={room_code}")
        player_id = _context_value(record, "player_id")
        if player_id:
            context_parts.append(f"player={str(player_id)[:8]}")

        context = f" [{', '.join(context_parts)}]" if context_parts else ""

        output = f"{timestamp} {color}{record.levelname:8}{reset} {record.name}{context} - {record.getMessage()}"

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


def setup_logging(
    level: str = "INFO",
    environment: str = "development",
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        environment: Environment name (production uses JSON, else human-readable).
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if environment == "production":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(log_level)

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level}, environment={environment}",
    )


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that carries session context on every record.

    Usage:
        logger = get_logger(__name__).with_context(room_code="123456")
        logger.info("Player knocked")
    """

    def __init__(self, logger: logging.Logger, extra: Optional[dict] = None):
        super().__init__(logger, extra or {})

    def with_context(self, **kwargs) -> "ContextLogger":
        """Return a new logger with the given fields merged into its context."""
        return ContextLogger(self.logger, {**self.extra, **kwargs})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger (name is typically __name__)."""
    return ContextLogger(logging.getLogger(name))
