"""Base result cache interface.

Defines the contract the analysis session depends on, independent of the
backing implementation (process memory, Redis).

A cache instance belongs to exactly one browsing session: it is created when
the session starts and cleared when the session ends. Entries never expire
individually.
"""

from abc import ABC, abstractmethod
from typing import Optional

from libs.introspection.models import CanonicalResult


class ResultCache(ABC):
    """Abstract base class for session result caches.

    Implementations store one record per id; a second ``put`` for the same id
    replaces the first (last write wins, no merge).
    """

    cache_type: str = "abstract"

    @abstractmethod
    async def put(self, result_id: str, result: CanonicalResult) -> None:
        """Store ``result`` under ``result_id``, replacing any prior entry."""
        pass

    @abstractmethod
    async def get(self, result_id: str) -> Optional[CanonicalResult]:
        """Return the cached record, or ``None`` when absent."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Number of records held for this session."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Drop every record of this session."""
        pass

    async def close(self) -> None:
        """Release backend resources. The default has none."""
        return None
