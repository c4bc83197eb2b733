"""Result cache factory.

Centralizes creation of concrete ``ResultCache`` backends so the session and
the console service don't depend on implementation details.
"""

from enum import Enum
from typing import Any, Dict

import structlog

from libs.common.config import BaseConfig
from .base import ResultCache
from .memory import MemoryResultCache
from .redis_store import RedisResultCache

logger = structlog.get_logger("result_cache.factory")


class ResultCacheType(Enum):
    """Supported cache backends."""
    MEMORY = "memory"
    REDIS = "redis"


class ResultCacheFactory:
    """Factory for creating per-session cache instances."""

    @staticmethod
    def create(
        cache_type: ResultCacheType,
        session_id: str,
        config: Dict[str, Any],
        **kwargs: Any
    ) -> ResultCache:
        """Create a cache for one session.

        Parameters
        - cache_type: A ``ResultCacheType`` enum value
        - session_id: Browsing-session identifier
        - config: Backend‑specific parameters (e.g. ``redis_url``)
        - kwargs: Additional overrides forwarded to the implementation
        """
        if cache_type == ResultCacheType.MEMORY:
            return MemoryResultCache(session_id=session_id)

        elif cache_type == ResultCacheType.REDIS:
            redis_url = config.get("redis_url")
            if not redis_url and "client" not in kwargs:
                raise ValueError("Redis cache requires 'redis_url' in config")
            return RedisResultCache(
                session_id=session_id,
                redis_url=redis_url,
                session_ttl=config.get("session_ttl", 86400),
                **kwargs
            )

        raise ValueError(f"Unsupported result cache type: {cache_type}")


def create_result_cache(config: BaseConfig, session_id: str, **kwargs: Any) -> ResultCache:
    """Create the configured cache backend for a new session."""
    backend = config.watcher_cache_backend.strip().lower()
    try:
        cache_type = ResultCacheType(backend)
    except ValueError:
        raise ValueError(f"Unknown result cache backend: {config.watcher_cache_backend}") from None

    logger.debug("Creating result cache", backend=cache_type.value, session_id=session_id)
    return ResultCacheFactory.create(
        cache_type,
        session_id,
        {
            "redis_url": config.watcher_redis_url,
            "session_ttl": config.watcher_session_ttl_seconds,
        },
        **kwargs
    )
