"""
Experiment API schemas
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from laikatest.validation import LIMIT_MAX, LIMIT_MIN, SCORE_MAX, SCORE_MIN


class SplitType(str, Enum):
    """How the service picks the subject key"""

    USER = "user"
    SESSION = "session"
    RANDOM = "random"


class Outcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class UserFeedback(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


# --- Assignment ---


class PromptMetadata(BaseModel):
    """Prompt template the variant was rendered from"""

    model_config = ConfigDict(frozen=True, extra="allow")

    prompt_id: Optional[str] = None
    prompt_name: Optional[str] = None
    prompt_version_id: Optional[str] = None
    version_number: Optional[int] = None
    version_changelog: Optional[str] = None


class ExperimentMetadata(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    experiment_id: Optional[str] = None
    experiment_name: Optional[str] = None
    split_type: Optional[SplitType] = None
    identifier_used: Optional[str] = None


class Assignment(BaseModel):
    """
    Server-issued assignment of a prompt variant

    Immutable once received. assignment_id is what outcome events point at.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    assignment_id: str
    prompt_content: Optional[str] = None
    variant_name: Optional[str] = None
    variant_id: Optional[str] = None
    is_control: bool = False
    prompt_metadata: Optional[PromptMetadata] = None
    experiment_metadata: Optional[ExperimentMetadata] = None


class PromptRequest(BaseModel):
    """Body of POST /api/v1/experiments/{experiment_id}/prompt"""

    split_type: SplitType
    user_id: Optional[str] = None
    session_id: Optional[str] = None


# --- Event tracking ---


class TrackingEvent(BaseModel):
    """Body of POST /api/v1/events"""

    assignment_id: str
    outcome: Outcome
    score: Optional[float] = Field(None, ge=SCORE_MIN, le=SCORE_MAX)
    user_feedback: Optional[UserFeedback] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    message: Optional[str] = None


# --- Event query ---


class EventFilters(BaseModel):
    """Query parameters for GET /api/v1/experiments/{experiment_id}/events"""

    start_date: Optional[str] = None
    end_date: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    min_score: Optional[float] = Field(None, ge=SCORE_MIN, le=SCORE_MAX)
    max_score: Optional[float] = Field(None, ge=SCORE_MIN, le=SCORE_MAX)
    feedback: Optional[str] = None
    outcome: Optional[Outcome] = None
    page: int = Field(1, ge=1)
    limit: int = Field(50, ge=LIMIT_MIN, le=LIMIT_MAX)

    def to_query_params(self) -> List[Tuple[str, str]]:
        """Query pairs in wire order; unset filters are omitted"""
        params: List[Tuple[str, str]] = []
        for name in (
            "start_date",
            "end_date",
            "user_id",
            "session_id",
            "min_score",
            "max_score",
            "feedback",
            "outcome",
        ):
            value = getattr(self, name)
            if value is None or value == "":
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, float):
                value = f"{value:g}"
            params.append((name, str(value)))

        params.append(("page", str(self.page)))
        params.append(("limit", str(self.limit)))
        return params


class Event(BaseModel):
    """One recorded outcome event"""

    model_config = ConfigDict(extra="allow")

    id: str
    experiment_id: Optional[str] = None
    variant_id: Optional[str] = None
    assignment_id: Optional[str] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    outcome: Optional[str] = None
    score: Optional[float] = None
    feedback: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class EventsMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    total: int = 0
    page: int = 1
    limit: int = 50


class EventsPage(BaseModel):
    """Normalised result of an events query"""

    events: List[Event] = Field(default_factory=list)
    meta: EventsMeta = Field(default_factory=EventsMeta)
