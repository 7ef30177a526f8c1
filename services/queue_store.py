"""Queue status storage backed by Redis.

Every (project, branch) job owns exactly one cache entry. The entry is both
the mutex guarding the job and the progress snapshot pollers read, so
acquiring the lock and publishing the first snapshot is one atomic
``SET NX``.

Each acquire stores a fresh owner token inside the entry. Updates and
releases are Lua scripts that compare the token first, so a job whose entry
expired can neither overwrite nor delete the entry of the job that
replaced it.
"""

import json
import logging
import uuid
from typing import Optional, Protocol

import redis.asyncio as aioredis

from .models import QueueStatus

logger = logging.getLogger(__name__)

# Lua script for atomic snapshot update (check owner + set, TTL renewed when > 0)
UPDATE_SCRIPT = """
local current = redis.call("get", KEYS[1])
if not current or cjson.decode(current)["owner"] ~= ARGV[1] then
    return 0
end
if tonumber(ARGV[3]) > 0 then
    redis.call("set", KEYS[1], ARGV[2], "EX", ARGV[3])
else
    redis.call("set", KEYS[1], ARGV[2])
end
return 1
"""

# Lua script for atomic release (check owner + delete)
RELEASE_SCRIPT = """
local current = redis.call("get", KEYS[1])
if current and cjson.decode(current)["owner"] == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class QueueStatusStore(Protocol):
    """Mutual exclusion and progress snapshots per (project, branch) key."""

    async def try_acquire(self, key: str, status: QueueStatus) -> Optional[str]:
        """Create the entry if absent; returns the owner token, or ``None`` if held."""
        ...

    async def update(self, key: str, owner: str, status: QueueStatus) -> bool:
        """Overwrite the snapshot; ``False`` when ``owner`` no longer holds the entry."""
        ...

    async def get(self, key: str) -> Optional[QueueStatus]: ...

    async def release(self, key: str, owner: str) -> bool: ...


class RedisQueueStatusStore:
    """QueueStatusStore on top of ``redis.asyncio``."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        key_prefix: str = "",
        ttl_seconds: Optional[int] = None,
    ):
        """
        Args:
            redis_client: Async Redis client
            key_prefix: Prefix prepended to every key (cache instance name)
            ttl_seconds: Expiry renewed on every write; ``None`` or 0 keeps
                entries until they are released
        """
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds or None

    @classmethod
    def from_url(
        cls, redis_url: str, key_prefix: str = "", ttl_seconds: Optional[int] = None
    ) -> 'RedisQueueStatusStore':
        client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, key_prefix=key_prefix, ttl_seconds=ttl_seconds)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    @staticmethod
    def _serialize(owner: str, status: QueueStatus) -> str:
        return json.dumps({"owner": owner, **status.to_dict()})

    async def try_acquire(self, key: str, status: QueueStatus) -> Optional[str]:
        owner = uuid.uuid4().hex
        acquired = await self.redis_client.set(
            self._key(key), self._serialize(owner, status), ex=self.ttl_seconds, nx=True
        )
        if not acquired:
            logger.debug(f"Queue entry {self._key(key)} already exists")
            return None

        logger.debug(f"Acquired queue entry {self._key(key)}, owner={owner[:8]}")
        return owner

    async def update(self, key: str, owner: str, status: QueueStatus) -> bool:
        updated = await self.redis_client.eval(
            UPDATE_SCRIPT,
            1,
            self._key(key),
            owner,
            self._serialize(owner, status),
            self.ttl_seconds or 0,
        )
        return bool(updated)

    async def get(self, key: str) -> Optional[QueueStatus]:
        data = await self.redis_client.get(self._key(key))
        if data is None:
            return None
        return QueueStatus.from_dict(json.loads(data))

    async def release(self, key: str, owner: str) -> bool:
        released = await self.redis_client.eval(RELEASE_SCRIPT, 1, self._key(key), owner)
        if released:
            logger.debug(f"Released queue entry {self._key(key)}")
        else:
            logger.warning(f"Queue entry {self._key(key)} was not held by owner {owner[:8]}")
        return bool(released)

    async def ping(self) -> bool:
        return bool(await self.redis_client.ping())

    async def close(self) -> None:
        await self.redis_client.aclose()
