"""
Experiment client

Fetches prompt assignments from LaikaTest and records outcomes against them.
"""

from laikatest.experiments.client import (
    ExperimentClient,
    close_experiment_client,
    get_experiment_client,
)
from laikatest.experiments.resolver import AssignmentResolver, ResolvedAssignment
from laikatest.experiments.schemas import (
    Assignment,
    Event,
    EventFilters,
    EventResponse,
    EventsMeta,
    EventsPage,
    ExperimentMetadata,
    Outcome,
    PromptMetadata,
    SplitType,
    TrackingEvent,
    UserFeedback,
)

__all__ = [
    "Assignment",
    "AssignmentResolver",
    "Event",
    "EventFilters",
    "EventResponse",
    "EventsMeta",
    "EventsPage",
    "ExperimentClient",
    "ExperimentMetadata",
    "Outcome",
    "PromptMetadata",
    "ResolvedAssignment",
    "SplitType",
    "TrackingEvent",
    "UserFeedback",
    "close_experiment_client",
    "get_experiment_client",
]
