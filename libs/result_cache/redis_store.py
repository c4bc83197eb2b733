"""Redis-backed result cache.

Lets several console workers share one browsing session. Each session is a
single Redis hash (``watcher:session:<id>:results``) whose fields are result
ids and whose values are canonical JSON. The hash carries one expiry, renewed
on every write and hit, so all records of a session live and die together.
"""

from typing import Optional

import redis.asyncio as redis
import structlog

from libs.introspection.models import CanonicalResult
from .base import ResultCache

logger = structlog.get_logger("result_cache.redis")


def create_redis_client(redis_url: str) -> redis.Redis:
    """Connection pool shared by every session cache of a process."""
    return redis.from_url(redis_url)


class RedisResultCache(ResultCache):
    """Session-namespaced cache on Redis."""

    cache_type = "redis"

    def __init__(
        self,
        session_id: str,
        redis_url: Optional[str] = None,
        session_ttl: int = 86400,
        client: Optional[redis.Redis] = None
    ):
        """Construct a cache for one session.

        Parameters
        - session_id: Browsing-session identifier used as key namespace
        - redis_url: Connection URL, ignored when ``client`` is given
        - session_ttl: Seconds the session hash lives in Redis after its last use
        - client: Shared ``redis.asyncio`` client; the caller keeps ownership
        """
        if client is None and not redis_url:
            raise ValueError("RedisResultCache requires 'redis_url' or 'client'")
        self.session_id = session_id
        self.session_ttl = session_ttl
        self.owns_client = client is None
        self.redis_client = client if client is not None else create_redis_client(redis_url)
        self.key = f"watcher:session:{session_id}:results"

    async def _touch(self) -> None:
        await self.redis_client.expire(self.key, self.session_ttl)

    async def put(self, result_id: str, result: CanonicalResult) -> None:
        await self.redis_client.hset(self.key, result_id, result.model_dump_json(by_alias=True))
        await self._touch()
        logger.debug("Result cached", session_id=self.session_id, result_id=result_id)

    async def get(self, result_id: str) -> Optional[CanonicalResult]:
        cached = await self.redis_client.hget(self.key, result_id)
        if cached is None:
            return None
        await self._touch()
        return CanonicalResult.model_validate_json(cached)

    async def count(self) -> int:
        return int(await self.redis_client.hlen(self.key))

    async def clear(self) -> None:
        deleted = await self.redis_client.delete(self.key)
        logger.info("Session cache cleared", session_id=self.session_id, keys_deleted=deleted)

    async def close(self) -> None:
        if self.owns_client:
            await self.redis_client.aclose()
        logger.debug("Redis result cache closed", session_id=self.session_id)
