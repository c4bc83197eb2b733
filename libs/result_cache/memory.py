"""In-process result cache, the default session backend."""

from typing import Dict, Optional

import structlog

from libs.introspection.models import CanonicalResult
from .base import ResultCache

logger = structlog.get_logger("result_cache.memory")


class MemoryResultCache(ResultCache):
    """Dictionary-backed cache scoped to one session object."""

    cache_type = "memory"

    def __init__(self, session_id: str = "default"):
        self.session_id = session_id
        self._records: Dict[str, CanonicalResult] = {}

    async def put(self, result_id: str, result: CanonicalResult) -> None:
        replaced = result_id in self._records
        self._records[result_id] = result
        logger.debug(
            "Result cached",
            session_id=self.session_id,
            result_id=result_id,
            replaced=replaced
        )

    async def get(self, result_id: str) -> Optional[CanonicalResult]:
        return self._records.get(result_id)

    async def count(self) -> int:
        return len(self._records)

    async def clear(self) -> None:
        dropped = len(self._records)
        self._records.clear()
        logger.info("Session cache cleared", session_id=self.session_id, dropped=dropped)
