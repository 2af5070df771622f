"""
LaikaTest prompt experiment client

    async with ExperimentClient("lt_api_key") as client:
        assignment = await client.get_prompt_for_user("exp-1", "user-42")
        ...
        await client.track_success(experiment_id="exp-1", user_id="user-42", score=8)
"""

from laikatest.core.config import ClientConfig, Settings, get_settings
from laikatest.core.errors import (
    AssignmentNotFoundError,
    ErrorType,
    LaikaTestError,
    NetworkError,
    ServiceError,
    ValidationError,
)
from laikatest.core.logging import setup_logging
from laikatest.experiments import (
    Assignment,
    Event,
    EventResponse,
    EventsPage,
    ExperimentClient,
    Outcome,
    SplitType,
    UserFeedback,
    close_experiment_client,
    get_experiment_client,
)
from laikatest.transport import HttpxRequestExecutor, RequestExecutor, TransportResponse

__version__ = "1.0.0"

__all__ = [
    "Assignment",
    "AssignmentNotFoundError",
    "ClientConfig",
    "ErrorType",
    "Event",
    "EventResponse",
    "EventsPage",
    "ExperimentClient",
    "HttpxRequestExecutor",
    "LaikaTestError",
    "NetworkError",
    "Outcome",
    "RequestExecutor",
    "ServiceError",
    "Settings",
    "SplitType",
    "TransportResponse",
    "UserFeedback",
    "ValidationError",
    "close_experiment_client",
    "get_experiment_client",
    "get_settings",
    "setup_logging",
]
