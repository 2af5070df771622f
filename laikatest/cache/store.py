"""
In-memory assignment cache

- TTL per entry, checked lazily on read
- sweep() for entries that are written but never read again
- hit/miss statistics

All operations are synchronous. The client only touches the cache from its
event loop, so no locking is needed.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, Optional

from laikatest.cache.keys import AssignmentKey, build_key
from laikatest.core.logging import get_logger

if TYPE_CHECKING:
    from laikatest.experiments.schemas import Assignment

logger = get_logger(__name__)


@dataclass
class CacheStats:
    """Cache statistics"""

    hits: int = 0
    misses: int = 0
    expired: int = 0
    swept: int = 0
    last_reset: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.expired = 0
        self.swept = 0
        self.last_reset = datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    assignment: "Assignment"
    expires_at: float


class AssignmentCache:
    """
    Assignment cache keyed by (experiment, user, session)

    One live entry per key; store() overwrites. Memory grows with the number
    of distinct live keys, there is no capacity bound.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[AssignmentKey, CacheEntry] = {}

        self.stats = CacheStats()

    @property
    def ttl(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: AssignmentKey) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() <= entry.expires_at

    @staticmethod
    def key(
        experiment_id: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> AssignmentKey:
        return build_key(experiment_id, user_id, session_id)

    def store(
        self,
        experiment_id: str,
        user_id: Optional[str],
        session_id: Optional[str],
        assignment: "Assignment",
    ) -> None:
        key = self.key(experiment_id, user_id, session_id)
        self._entries[key] = CacheEntry(
            assignment=assignment,
            expires_at=self._clock() + self._ttl,
        )

    def get(
        self,
        experiment_id: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Optional["Assignment"]:
        """
        Return the cached assignment, or None

        An expired entry is deleted here rather than returned, so a reader
        never sees a stale assignment even if the sweep has not run yet.
        """
        key = self.key(experiment_id, user_id, session_id)
        entry = self._entries.get(key)

        if entry is None:
            self.stats.misses += 1
            return None

        if self._clock() > entry.expires_at:
            del self._entries[key]
            self.stats.misses += 1
            self.stats.expired += 1
            return None

        self.stats.hits += 1
        return entry.assignment

    def sweep(self) -> int:
        """Drop every expired entry; returns how many were removed"""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at < now]
        for key in expired:
            del self._entries[key]

        self.stats.swept += len(expired)
        if expired:
            logger.debug("assignment_cache_swept", removed=len(expired), remaining=len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def get_stats(self) -> dict:
        return {
            "size": len(self._entries),
            "hits": self.stats.hits,
            "misses": self.stats.misses,
            "expired": self.stats.expired,
            "swept": self.stats.swept,
            "hit_rate": f"{self.stats.hit_rate:.2%}",
            "last_reset": self.stats.last_reset.isoformat(),
        }
