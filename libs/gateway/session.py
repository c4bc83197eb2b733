"""Analysis sessions: the operations the presentation layer calls.

A session owns one result cache for the lifetime of a browsing session. The
submission path writes a record into that cache before ``analyze`` returns,
so any view that follows can read it without a second round trip.
"""

import secrets
import string
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import redis.asyncio as redis
import structlog

from libs.common.config import BaseConfig
from libs.common.metrics import MetricsCollector
from libs.common.tracing import traced
from libs.introspection.adapter import Clock, adapt, adapt_health, adapt_history, utc_now
from libs.introspection.errors import BackendFailure, NotFound
from libs.introspection.models import CanonicalResult, HealthStatus, HistoryItem
from libs.result_cache.base import ResultCache
from libs.result_cache.factory import create_result_cache
from libs.result_cache.redis_store import create_redis_client
from .client import RequestGateway

logger = structlog.get_logger("gateway.session")

_ID_ALPHABET = string.digits + string.ascii_lowercase


def mint_result_id() -> str:
    """Time-based id for results the backend does not name itself."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"analysis_{int(time.time() * 1000)}_{suffix}"


def mint_session_id() -> str:
    return uuid.uuid4().hex


async def fetch_history(gateway: RequestGateway, limit: int = 20, offset: int = 0) -> List[HistoryItem]:
    """Backend history; needs no session since nothing is cached."""
    return adapt_history(await gateway.list_history(limit=limit, offset=offset))


async def fetch_health(gateway: RequestGateway) -> HealthStatus:
    return adapt_health(await gateway.health())


class AnalysisSession:
    """Inbound operations bound to one session cache."""

    def __init__(
        self,
        gateway: RequestGateway,
        cache: ResultCache,
        config: Optional[BaseConfig] = None,
        session_id: str = "default",
        id_factory: Callable[[], str] = mint_result_id,
        clock: Clock = utc_now,
        metrics: Optional[MetricsCollector] = None
    ):
        """Bind a gateway and a cache into a session.

        Parameters
        - gateway: Shared ``RequestGateway``
        - cache: This session's ``ResultCache``
        - config: Decides whether cache misses fall through to the backend
        - session_id: Identifier used in logs and cache namespaces
        - id_factory: Mints ids for results the backend leaves unnamed
        - clock: Timestamp source for results without one
        - metrics: Optional collector for cache and adaptation metrics
        """
        self.gateway = gateway
        self.cache = cache
        self.session_id = session_id
        self.id_factory = id_factory
        self.clock = clock
        self.metrics = metrics
        self.persists_results = config.watcher_backend_persists_results if config else False

    async def analyze(self, prompt: str, output: str) -> str:
        """Submit a prompt/output pair; returns the id of the cached result."""
        with traced("session.analyze", session_id=self.session_id) as span:
            payload = await self.gateway.submit(prompt, output)
            result = adapt(
                payload,
                id_factory=self.id_factory,
                prompt=prompt,
                output=output,
                clock=self.clock,
                metrics=self.metrics
            )
            await self.cache.put(result.id, result)
            span.set_attribute("watcher.result_id", result.id)

        logger.info(
            "Analysis stored",
            session_id=self.session_id,
            result_id=result.id,
            risk_level=result.risk_level.value,
            concerns=len(result.concerns)
        )
        return result.id

    async def get_result(self, result_id: str) -> CanonicalResult:
        """Read a result, from the session cache first.

        Raises ``NotFound`` when neither the cache nor (if it persists
        results) the backend knows the id.
        """
        with traced("session.get_result", session_id=self.session_id, result_id=result_id):
            return await self._lookup(result_id)

    async def _lookup(self, result_id: str) -> CanonicalResult:
        cached = await self.cache.get(result_id)
        if cached is not None:
            if self.metrics:
                self.metrics.record_cache_hit(self.cache.cache_type)
            return cached

        if self.metrics:
            self.metrics.record_cache_miss(self.cache.cache_type)

        if not self.persists_results:
            logger.info("Result not in session cache", session_id=self.session_id, result_id=result_id)
            raise NotFound(result_id)

        try:
            payload = await self.gateway.fetch_by_id(result_id)
        except BackendFailure as e:
            if e.status_code == 404:
                raise NotFound(result_id) from e
            raise

        result = adapt(
            payload,
            id_factory=lambda: result_id,
            clock=self.clock,
            metrics=self.metrics
        )
        if result.id != result_id:
            logger.warning(
                "Backend record id differs from requested id",
                session_id=self.session_id,
                result_id=result_id,
                backend_id=result.id
            )
            result = result.model_copy(update={"id": result_id})
        await self.cache.put(result_id, result)
        logger.info("Result fetched from backend", session_id=self.session_id, result_id=result_id)
        return result

    async def get_history(self, limit: int = 20, offset: int = 0) -> List[HistoryItem]:
        return await fetch_history(self.gateway, limit=limit, offset=offset)

    async def check_health(self) -> HealthStatus:
        return await fetch_health(self.gateway)

    async def close(self) -> None:
        """End the session: every cached record is discarded."""
        await self.cache.clear()
        await self.cache.close()
        logger.info("Session closed", session_id=self.session_id)


class SessionRegistry:
    """Live sessions of the console service, keyed by session id.

    The gateway is shared; each session gets its own cache. With the Redis
    backend every cache borrows one client (and connection pool) owned by the
    registry. Sessions idle for longer than ``watcher_session_ttl_seconds`` are
    ended on the next ``open``.
    """

    def __init__(
        self,
        gateway: RequestGateway,
        config: BaseConfig,
        metrics: Optional[MetricsCollector] = None,
        cache_client: Optional[redis.Redis] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.gateway = gateway
        self.config = config
        self.metrics = metrics
        self.clock = clock
        self.idle_ttl = config.watcher_session_ttl_seconds
        self._sessions: Dict[str, AnalysisSession] = {}
        self._last_access: Dict[str, float] = {}

        self._owns_cache_client = False
        if cache_client is None and config.watcher_cache_backend.strip().lower() == "redis":
            if config.watcher_redis_url:
                cache_client = create_redis_client(config.watcher_redis_url)
                self._owns_cache_client = True
        self.cache_client = cache_client

    def __len__(self) -> int:
        return len(self._sessions)

    def _report_size(self) -> None:
        if self.metrics:
            self.metrics.set_active_sessions(len(self._sessions))

    def _cache_kwargs(self) -> Dict[str, Any]:
        return {"client": self.cache_client} if self.cache_client is not None else {}

    def get(self, session_id: str) -> Optional[AnalysisSession]:
        return self._sessions.get(session_id)

    async def evict_idle(self) -> int:
        """End every session untouched for longer than the idle TTL."""
        cutoff = self.clock() - self.idle_ttl
        expired = [sid for sid, seen in self._last_access.items() if seen < cutoff]
        for session_id in expired:
            await self.end(session_id)
        if expired:
            logger.info("Idle sessions evicted", count=len(expired))
        return len(expired)

    async def open(self, session_id: Optional[str] = None) -> AnalysisSession:
        """Return the session for ``session_id``, starting one if needed."""
        await self.evict_idle()

        session_id = session_id or mint_session_id()
        session = self._sessions.get(session_id)
        if session is None:
            session = AnalysisSession(
                gateway=self.gateway,
                cache=create_result_cache(self.config, session_id, **self._cache_kwargs()),
                config=self.config,
                session_id=session_id,
                metrics=self.metrics
            )
            self._sessions[session_id] = session
            self._report_size()
            logger.info("Session opened", session_id=session_id)
        self._last_access[session_id] = self.clock()
        return session

    async def end(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        self._last_access.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        self._report_size()
        return True

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.end(session_id)
        if self._owns_cache_client and self.cache_client is not None:
            await self.cache_client.aclose()
            self.cache_client = None
