"""Sorted-set stores backing the triage queue.

Each queue key holds a sorted set of members (bounty ids) with scores, plus a
side table of serialized payloads stored under ``<key>:payload``.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

from redis.exceptions import RedisError

from bountytriage.errors.exceptions import QueueUnavailableError

logger = logging.getLogger(__name__)


class SortedSetStore(ABC):
    """Atomic add / pop-highest / cardinality / remove over named sorted sets."""

    @abstractmethod
    async def add(self, key: str, member: str, score: float, payload: str) -> None:
        """Insert or replace ``member`` with ``score`` and its payload."""
        ...

    @abstractmethod
    async def pop_max(self, key: str) -> tuple[str, float, str | None] | None:
        """Remove and return the highest-scoring ``(member, score, payload)``.

        Concurrent callers never receive the same member. Returns None when
        the set is empty.
        """
        ...

    @abstractmethod
    async def cardinality(self, key: str) -> int:
        ...

    @abstractmethod
    async def remove(self, key: str, member: str) -> bool:
        """Delete ``member``; return True if it was present."""
        ...

    @abstractmethod
    async def ping(self) -> bool:
        ...


def _payload_key(key: str) -> str:
    return f"{key}:payload"


def _decode(value):
    return value.decode("utf-8") if isinstance(value, bytes) else value


# Pops the top member together with its payload as one server-side step.
POP_MAX_SCRIPT = """
local popped = redis.call('ZPOPMAX', KEYS[1])
if #popped == 0 then
    return nil
end
local payload = redis.call('HGET', KEYS[2], popped[1])
redis.call('HDEL', KEYS[2], popped[1])
return {popped[1], popped[2], payload}
"""


class RedisSortedSetStore(SortedSetStore):
    """Store backed by a Redis ZSET and HASH.

    Equal scores pop in Redis member order: the lexicographically greatest
    member first.
    """

    def __init__(self, redis) -> None:
        self.redis = redis
        self._pop_script = redis.register_script(POP_MAX_SCRIPT)

    async def add(self, key: str, member: str, score: float, payload: str) -> None:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.hset(_payload_key(key), member, payload)
                pipe.zadd(key, {member: score})
                await pipe.execute()
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError(f"Failed to add to {key}: {exc}") from exc

    async def pop_max(self, key: str) -> tuple[str, float, str | None] | None:
        try:
            popped = await self._pop_script(keys=[key, _payload_key(key)])
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError(f"Failed to pop from {key}: {exc}") from exc
        if not popped:
            return None

        member, score = _decode(popped[0]), _decode(popped[1])
        # A nil payload truncates the Lua reply to two elements.
        payload = _decode(popped[2]) if len(popped) > 2 and popped[2] else None
        return member, float(score), payload

    async def cardinality(self, key: str) -> int:
        try:
            return int(await self.redis.zcard(key) or 0)
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError(f"Failed to count {key}: {exc}") from exc

    async def remove(self, key: str, member: str) -> bool:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zrem(key, member)
                pipe.hdel(_payload_key(key), member)
                removed, _ = await pipe.execute()
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError(f"Failed to remove from {key}: {exc}") from exc
        return bool(removed)

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except (RedisError, OSError) as exc:
            raise QueueUnavailableError(f"Redis ping failed: {exc}") from exc


class InMemorySortedSetStore(SortedSetStore):
    """Process-local store for local mode and tests.

    Mirrors Redis tie ordering. State is lost on restart and is not shared
    between processes.
    """

    def __init__(self) -> None:
        self._sets: dict[str, dict[str, tuple[float, str]]] = {}
        self._lock = asyncio.Lock()

    async def add(self, key: str, member: str, score: float, payload: str) -> None:
        async with self._lock:
            self._sets.setdefault(key, {})[member] = (float(score), payload)

    async def pop_max(self, key: str) -> tuple[str, float, str | None] | None:
        async with self._lock:
            entries = self._sets.get(key)
            if not entries:
                return None
            member = max(entries, key=lambda m: (entries[m][0], m))
            score, payload = entries.pop(member)
            return member, score, payload

    async def cardinality(self, key: str) -> int:
        async with self._lock:
            return len(self._sets.get(key, {}))

    async def remove(self, key: str, member: str) -> bool:
        async with self._lock:
            return self._sets.get(key, {}).pop(member, None) is not None

    async def ping(self) -> bool:
        return True
