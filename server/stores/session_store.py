"""
Session persistence for Gin Rummy.

A session is saved as the full Game snapshot (every hand, deck and pile)
after each accepted command, and loaded by room code.

Two backends share one interface:
- MemorySessionStore: process-local dict, used when REDIS_URL is unset
- RedisSessionStore: redis.asyncio with a TTL so abandoned sessions expire

Key patterns:
- gin:session:{room_code}   -> JSON (full game snapshot)
- gin:sessions:active       -> Set (room codes with a saved session)
"""

import json
import logging
from datetime import timedelta
from typing import Optional, Protocol

import redis.asyncio as redis

from config import config
from game import Game

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Load / save / delete of a session aggregate by room code."""

    async def load(self, room_code: str) -> Optional[Game]: ...

    async def save(self, room_code: str, game: Game) -> None: ...

    async def delete(self, room_code: str) -> None: ...

    async def active_codes(self) -> set[str]: ...

    async def close(self) -> None: ...


class MemorySessionStore:
    """
    In-process session store.

    Snapshots are kept as JSON text so a load always returns a fresh Game,
    never the live object that was saved.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, str] = {}

    async def load(self, room_code: str) -> Optional[Game]:
        data = self._sessions.get(room_code)
        if data is None:
            return None
        return Game.from_dict(json.loads(data))

    async def save(self, room_code: str, game: Game) -> None:
        self._sessions[room_code] = json.dumps(game.to_dict())

    async def delete(self, room_code: str) -> None:
        self._sessions.pop(room_code, None)

    async def active_codes(self) -> set[str]:
        return set(self._sessions)

    async def close(self) -> None:
        self._sessions.clear()


class RedisSessionStore:
    """Redis-backed session store."""

    SESSION_KEY = "gin:session:{room_code}"
    ACTIVE_SESSIONS_KEY = "gin:sessions:active"

    def __init__(self, redis_client: redis.Redis, ttl: Optional[timedelta] = None):
        """
        Initialize the store with a Redis client.

        Args:
            redis_client: Async Redis client.
            ttl: Expiry for saved sessions (defaults to SESSION_TTL_SECONDS).
        """
        self.redis = redis_client
        self.ttl = ttl or timedelta(seconds=config.SESSION_TTL_SECONDS)

    @classmethod
    async def create(cls, redis_url: str) -> "RedisSessionStore":
        """
        Create a RedisSessionStore with a new Redis connection.

        Args:
            redis_url: Redis connection URL.

        Returns:
            Configured RedisSessionStore instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        # Test connection
        await client.ping()
        logger.info("SessionStore connected to Redis")
        return cls(client)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    async def ping(self) -> bool:
        return bool(await self.redis.ping())

    async def load(self, room_code: str) -> Optional[Game]:
        """
        Load a saved session.

        Args:
            room_code: Room code to look up.

        Returns:
            The restored Game, or None if missing or expired.
        """
        data = await self.redis.get(self.SESSION_KEY.format(room_code=room_code))
        if not data:
            return None
        if isinstance(data, bytes):
            data = data.decode()
        return Game.from_dict(json.loads(data))

    async def save(self, room_code: str, game: Game) -> None:
        """
        Save a full session snapshot and refresh its TTL.

        Args:
            room_code: Room code the session belongs to.
            game: Session aggregate to serialize.
        """
        pipe = self.redis.pipeline()
        pipe.set(
            self.SESSION_KEY.format(room_code=room_code),
            json.dumps(game.to_dict()),
            ex=int(self.ttl.total_seconds()),
        )
        pipe.sadd(self.ACTIVE_SESSIONS_KEY, room_code)
        await pipe.execute()

    async def delete(self, room_code: str) -> None:
        pipe = self.redis.pipeline()
        pipe.delete(self.SESSION_KEY.format(room_code=room_code))
        pipe.srem(self.ACTIVE_SESSIONS_KEY, room_code)
        await pipe.execute()
        logger.debug(f"Deleted session {room_code}")

    async def active_codes(self) -> set[str]:
        """
        Get room codes with a saved session.

        Returns:
            Set of room codes.
        """
        codes = await self.redis.smembers(self.ACTIVE_SESSIONS_KEY)
        return {c.decode() if isinstance(c, bytes) else c for c in codes}


async def create_session_store(redis_url: str = "") -> SessionStore:
    """
    Pick a backend: Redis when a URL is configured, memory otherwise.

    Args:
        redis_url: Redis connection URL (empty for in-memory).
    """
    if redis_url:
        return await RedisSessionStore.create(redis_url)
    logger.info("REDIS_URL not set, using in-memory session store")
    return MemorySessionStore()
