"""
Assignment resolution for outcome tracking

Finds the assignment id implied by (experiment, user?, session?) using only
the local cache. Never touches the network.
"""

from dataclasses import dataclass
from typing import Optional

from laikatest.cache import AssignmentCache
from laikatest.core.errors import AssignmentNotFoundError, ValidationError
from laikatest.core.logging import get_logger
from laikatest.validation import optional_str

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResolvedAssignment:
    assignment_id: str
    experiment_id: str
    source: str  # explicit / exact / user / session


class AssignmentResolver:
    """
    Resolution order, first match wins:

    1. explicit assignment_id + experiment_id, no lookup
    2. exact (experiment, user, session)
    3. user only (experiment, user, -)
    4. session only (experiment, -, session)

    The exact key goes first so an event is never attached to a weaker
    match when a more specific assignment exists.
    """

    def __init__(self, cache: AssignmentCache):
        self._cache = cache

    def resolve(
        self,
        experiment_id: Optional[str] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
    ) -> ResolvedAssignment:
        """
        Raises:
            ValidationError: neither identification form was supplied
            AssignmentNotFoundError: no cached assignment matches
        """
        experiment_id = optional_str(experiment_id, "experiment_id")
        user_id = optional_str(user_id, "user_id")
        session_id = optional_str(session_id, "session_id")
        assignment_id = optional_str(assignment_id, "assignment_id")

        if assignment_id and experiment_id:
            return ResolvedAssignment(assignment_id, experiment_id, "explicit")

        if not experiment_id or not (user_id or session_id):
            raise ValidationError(
                "Either (assignment_id + experiment_id) or "
                "(experiment_id + user_id/session_id) must be provided"
            )

        candidates = [("exact", user_id, session_id)]
        # With only one id supplied the exact key already is the fallback key
        if user_id and session_id:
            candidates.append(("user", user_id, None))
            candidates.append(("session", None, session_id))

        for source, candidate_user, candidate_session in candidates:
            assignment = self._cache.get(experiment_id, candidate_user, candidate_session)
            if assignment is not None:
                logger.debug(
                    "assignment_resolved",
                    experiment_id=experiment_id,
                    source=source,
                    assignment_id=assignment.assignment_id,
                )
                return ResolvedAssignment(assignment.assignment_id, experiment_id, source)

        logger.info(
            "assignment_not_found",
            experiment_id=experiment_id,
            has_user=bool(user_id),
            has_session=bool(session_id),
        )
        raise AssignmentNotFoundError(
            f"No assignment found for experiment {experiment_id}. "
            "Call a get_prompt_* method first."
        )
