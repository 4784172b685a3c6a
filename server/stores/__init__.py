"""Stores package for Gin Rummy session persistence."""

from .session_store import (
    MemorySessionStore,
    RedisSessionStore,
    SessionStore,
    create_session_store,
)

__all__ = [
    "SessionStore",
    "MemorySessionStore",
    "RedisSessionStore",
    "create_session_store",
]
