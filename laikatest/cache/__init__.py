"""
Cache package

In-process assignment cache:
- composite (experiment, user, session) keys
- per-entry TTL with lazy expiry
- periodic sweep
- hit/miss statistics
"""

from laikatest.cache.keys import NO_ID, AssignmentKey, build_key
from laikatest.cache.store import AssignmentCache, CacheEntry, CacheStats

__all__ = [
    "AssignmentCache",
    "AssignmentKey",
    "CacheEntry",
    "CacheStats",
    "NO_ID",
    "build_key",
]
