"""
Assignment cache keys

Key = (experiment_id, user_id | NO_ID, session_id | NO_ID)

Examples:
- AssignmentKey("exp1", "user1", NO_ID)     user split
- AssignmentKey("exp1", NO_ID, "session1")  session split
- AssignmentKey("exp1", "user1", "session1") exact identity
"""

from dataclasses import dataclass
from typing import Optional


class _NoIdentifier:
    """Sentinel for an absent user or session id"""

    _instance: Optional["_NoIdentifier"] = None

    def __new__(cls) -> "_NoIdentifier":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_ID"

    def __reduce__(self):
        return (_NoIdentifier, ())


NO_ID = _NoIdentifier()


@dataclass(frozen=True)
class AssignmentKey:
    """Value-typed composite key; equality and hashing come from the fields"""

    experiment_id: str
    user_id: object = NO_ID
    session_id: object = NO_ID

    def __str__(self) -> str:
        # Display form only; never used for lookup
        return ":".join(
            "null" if part is NO_ID else str(part)
            for part in (self.experiment_id, self.user_id, self.session_id)
        )


def build_key(
    experiment_id: str,
    user_id: Optional[str] = None,
    session_id: Optional[str] = None,
) -> AssignmentKey:
    """
    Build the cache key for an identity

    Empty and missing ids both map to NO_ID, so (e, u, None) and (e, u, "")
    address the same entry while (e, u, None) and (e, None, u) never collide.
    """
    return AssignmentKey(
        experiment_id=experiment_id,
        user_id=user_id if user_id else NO_ID,
        session_id=session_id if session_id else NO_ID,
    )
