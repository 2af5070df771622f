"""
LaikaTest experiment client

Calls the LaikaTest experiment API:
- POST /api/v1/experiments/{experiment_id}/prompt - prompt assignment
- POST /api/v1/events - outcome tracking
- GET  /api/v1/experiments/{experiment_id}/events - event query

User and session assignments are cached for cache_ttl_ms so repeated fetches
are consistent and so outcomes can be tracked without passing the
assignment id around.
"""

import asyncio
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar, Union
from urllib.parse import quote, urlencode

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from laikatest.cache import AssignmentCache
from laikatest.core.config import SWEEP_INTERVAL_SECONDS, ClientConfig
from laikatest.core.errors import ServiceError
from laikatest.core.logging import get_logger
from laikatest.experiments.resolver import AssignmentResolver
from laikatest.experiments.schemas import (
    Assignment,
    Event,
    EventFilters,
    EventResponse,
    EventsMeta,
    EventsPage,
    Outcome,
    PromptRequest,
    SplitType,
    TrackingEvent,
    UserFeedback,
)
from laikatest.transport import HttpxRequestExecutor, RequestExecutor, RequestPipeline
from laikatest.validation import (
    DateInput,
    optional_str,
    require_id,
    validate_date_range,
    validate_feedback,
    validate_limit,
    validate_outcome,
    validate_page,
    validate_score,
)

logger = get_logger(__name__)

EVENTS_PATH = "/api/v1/events"

ModelT = TypeVar("ModelT", bound=BaseModel)


class ExperimentClient:
    """
    LaikaTest experiment client

    Owns its assignment cache and the background task that sweeps it. Call
    destroy() (or aclose(), or use ``async with``) when done, otherwise the
    sweep task lives as long as the event loop.

    Concurrent first fetches for the same identity are not deduplicated:
    both miss the cache, both hit the network, and the response that lands
    last is the one cached.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout_ms: Optional[int] = None,
        cache_ttl_ms: Optional[int] = None,
        config: Optional[ClientConfig] = None,
        executor: Optional[RequestExecutor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._config = config or ClientConfig.build(
            api_key=api_key,
            base_url=base_url,
            timeout_ms=timeout_ms,
            cache_ttl_ms=cache_ttl_ms,
        )

        self._owns_executor = executor is None
        self._pipeline = RequestPipeline(self._config, executor or HttpxRequestExecutor())
        self._cache = AssignmentCache(self._config.cache_ttl_seconds, clock=clock)
        self._resolver = AssignmentResolver(self._cache)

        self._sweep_task: Optional[asyncio.Task] = None
        self._destroyed = False
        self._ensure_sweeper()

    # ============================================================
    # Configuration
    # ============================================================

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def api_key(self) -> str:
        return self._config.api_key

    @property
    def base_url(self) -> str:
        return self._config.base_url

    @property
    def timeout(self) -> int:
        """Request timeout in milliseconds"""
        return self._config.timeout_ms

    @property
    def cache_ttl(self) -> int:
        """Assignment cache TTL in milliseconds"""
        return self._config.cache_ttl_ms

    @property
    def cache(self) -> AssignmentCache:
        return self._cache

    # ============================================================
    # Lifecycle
    # ============================================================

    def _ensure_sweeper(self) -> None:
        """Start the sweep task if a loop is running and none is active"""
        if self._destroyed:
            return
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Constructed outside a loop; started by the first async call
            return
        self._sweep_task = loop.create_task(self._sweep_loop(), name="laikatest-cache-sweep")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(SWEEP_INTERVAL_SECONDS)
            self._cache.sweep()

    @property
    def sweeper_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def clear_cache(self) -> None:
        """Drop every cached assignment"""
        self._cache.clear()
        logger.debug("assignment_cache_cleared")

    def get_cache_stats(self) -> Dict[str, Any]:
        return self._cache.get_stats()

    def destroy(self) -> None:
        """
        Stop the sweep task and clear the cache

        Safe to call more than once. In-flight requests are not cancelled and
        the client can still make requests, but no background work restarts.
        """
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
        if not self._destroyed:
            logger.debug("experiment_client_destroyed")
        self._destroyed = True
        self._cache.clear()

    async def aclose(self) -> None:
        """destroy() and close the HTTP client if this instance created it"""
        self.destroy()
        if self._owns_executor:
            await self._pipeline.aclose()

    async def __aenter__(self) -> "ExperimentClient":
        self._ensure_sweeper()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ============================================================
    # Prompt assignment
    # ============================================================

    async def get_prompt_for_user(self, experiment_id: str, user_id: str) -> Assignment:
        """
        Get the prompt assignment for a user

        Cached per (experiment, user) for cache_ttl_ms.

        Raises:
            ValidationError, NetworkError, ServiceError
        """
        require_id(experiment_id, "experiment_id")
        require_id(user_id, "user_id")
        return await self._get_prompt(experiment_id, SplitType.USER, user_id=user_id)

    async def get_prompt_for_session(self, experiment_id: str, session_id: str) -> Assignment:
        """Get the prompt assignment for a session, cached per (experiment, session)"""
        require_id(experiment_id, "experiment_id")
        require_id(session_id, "session_id")
        return await self._get_prompt(experiment_id, SplitType.SESSION, session_id=session_id)

    async def get_random_prompt(self, experiment_id: str) -> Assignment:
        """Get a random assignment; never read from or written to the cache"""
        require_id(experiment_id, "experiment_id")
        return await self._get_prompt(experiment_id, SplitType.RANDOM)

    async def _get_prompt(
        self,
        experiment_id: str,
        split_type: SplitType,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> Assignment:
        self._ensure_sweeper()
        log = logger.bind(experiment_id=experiment_id, split_type=split_type.value)
        cacheable = split_type is not SplitType.RANDOM

        if cacheable:
            cached = self._cache.get(experiment_id, user_id, session_id)
            if cached is not None:
                log.debug("prompt_cache_hit", assignment_id=cached.assignment_id)
                return cached

        body = PromptRequest(split_type=split_type, user_id=user_id, session_id=session_id)
        envelope = await self._pipeline.request(
            "POST",
            self._experiment_path(experiment_id, "prompt"),
            body.model_dump(mode="json", exclude_none=True),
            require_data=True,
        )
        assignment = self._parse(Assignment, envelope["data"], "assignment")

        if cacheable:
            self._cache.store(experiment_id, user_id, session_id, assignment)

        log.info(
            "prompt_assigned",
            assignment_id=assignment.assignment_id,
            variant=assignment.variant_name,
            is_control=assignment.is_control,
            cached=cacheable,
        )
        return assignment

    # ============================================================
    # Outcome tracking
    # ============================================================

    async def track_outcome(
        self,
        outcome: Union[Outcome, str],
        *,
        experiment_id: Optional[str] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
        score: Optional[float] = None,
        user_feedback: Optional[Union[UserFeedback, str]] = None,
    ) -> EventResponse:
        """
        Record an outcome against an assignment

        Identify the assignment either explicitly (assignment_id +
        experiment_id) or by the identity it was fetched for (experiment_id +
        user_id and/or session_id), in which case it is looked up in the cache.

        Args:
            outcome: "success" or "failure"
            score: optional score in [0, 10]
            user_feedback: optional "positive" / "negative" / "neutral"

        Returns:
            The event acknowledged by the service

        Raises:
            ValidationError: bad arguments, raised before any lookup
            AssignmentNotFoundError: nothing cached for the identity
            NetworkError, ServiceError
        """
        outcome = validate_outcome(outcome)
        if score is not None:
            validate_score(score)
        if user_feedback is not None:
            user_feedback = validate_feedback(user_feedback)

        resolved = self._resolver.resolve(
            experiment_id=experiment_id,
            user_id=user_id,
            session_id=session_id,
            assignment_id=assignment_id,
        )

        self._ensure_sweeper()
        event = TrackingEvent(
            assignment_id=resolved.assignment_id,
            outcome=outcome,
            score=score,
            user_feedback=user_feedback,
        )
        envelope = await self._pipeline.request(
            "POST",
            EVENTS_PATH,
            event.model_dump(mode="json", exclude_none=True),
            require_data=True,
        )
        response = self._parse(EventResponse, envelope["data"], "event")

        logger.info(
            "outcome_tracked",
            experiment_id=resolved.experiment_id,
            assignment_id=resolved.assignment_id,
            resolved_by=resolved.source,
            outcome=outcome,
            event_id=response.id,
        )
        return response

    async def track_success(self, **options: Any) -> EventResponse:
        return await self.track_outcome(Outcome.SUCCESS, **options)

    async def track_failure(self, **options: Any) -> EventResponse:
        return await self.track_outcome(Outcome.FAILURE, **options)

    async def track_feedback(
        self,
        feedback: Union[UserFeedback, str],
        **options: Any,
    ) -> EventResponse:
        """Record a success outcome carrying user feedback"""
        options["user_feedback"] = feedback
        return await self.track_outcome(Outcome.SUCCESS, **options)

    # ============================================================
    # Event query
    # ============================================================

    async def get_experiment_events(
        self,
        experiment_id: str,
        *,
        start_date: Optional[DateInput] = None,
        end_date: Optional[DateInput] = None,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        min_score: Optional[float] = None,
        max_score: Optional[float] = None,
        feedback: Optional[str] = None,
        outcome: Optional[Union[Outcome, str]] = None,
        page: int = 1,
        limit: int = 50,
    ) -> EventsPage:
        """
        Query recorded events for an experiment

        Returns:
            EventsPage; meta defaults to total=0 with the requested page and
            limit for any field the service omits
        """
        filters = self._build_filters(
            experiment_id,
            start_date=start_date,
            end_date=end_date,
            user_id=user_id,
            session_id=session_id,
            min_score=min_score,
            max_score=max_score,
            feedback=feedback,
            outcome=outcome,
            page=page,
            limit=limit,
        )

        self._ensure_sweeper()
        query = urlencode(filters.to_query_params())
        envelope = await self._pipeline.request(
            "GET",
            f"{self._experiment_path(experiment_id, 'events')}?{query}",
        )

        data = envelope.get("data")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise ServiceError("Invalid events payload", response=envelope)

        events: List[Event] = [self._parse(Event, item, "event") for item in data]
        raw_meta = envelope.get("meta") or {}
        if not isinstance(raw_meta, dict):
            raise ServiceError("Invalid events meta payload", response=envelope)
        # Fields the service omits fall back to what was requested
        meta = self._parse(
            EventsMeta,
            {"total": 0, "page": filters.page, "limit": filters.limit, **raw_meta},
            "events meta",
        )

        logger.debug(
            "experiment_events_fetched",
            experiment_id=experiment_id,
            count=len(events),
            total=meta.total,
        )
        return EventsPage(events=events, meta=meta)

    @staticmethod
    def _build_filters(
        experiment_id: str,
        *,
        start_date: Optional[DateInput],
        end_date: Optional[DateInput],
        user_id: Optional[str],
        session_id: Optional[str],
        min_score: Optional[float],
        max_score: Optional[float],
        feedback: Optional[str],
        outcome: Optional[Union[Outcome, str]],
        page: int,
        limit: int,
    ) -> EventFilters:
        """Validate every filter before anything goes on the wire"""
        require_id(experiment_id, "experiment_id")
        validate_page(page)
        validate_limit(limit)
        validate_date_range(start_date, end_date)
        if min_score is not None:
            validate_score(min_score, "min_score")
        if max_score is not None:
            validate_score(max_score, "max_score")
        if outcome is not None:
            outcome = validate_outcome(outcome)

        return EventFilters(
            start_date=_date_param(start_date),
            end_date=_date_param(end_date),
            user_id=optional_str(user_id, "user_id"),
            session_id=optional_str(session_id, "session_id"),
            min_score=min_score,
            max_score=max_score,
            feedback=optional_str(feedback, "feedback"),
            outcome=outcome,
            page=page,
            limit=limit,
        )

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    def _experiment_path(experiment_id: str, resource: str) -> str:
        return f"/api/v1/experiments/{quote(experiment_id, safe='')}/{resource}"

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, what: str) -> ModelT:
        try:
            return model.model_validate(data)
        except PydanticValidationError as e:
            logger.warning("invalid_payload", payload=what, errors=e.error_count())
            raise ServiceError(f"Invalid {what} payload", response=data) from e


def _date_param(value: Optional[DateInput]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return value


# Singleton
_experiment_client: Optional[ExperimentClient] = None


def get_experiment_client() -> ExperimentClient:
    """Process-wide client configured from LAIKATEST_* settings"""
    global _experiment_client
    if _experiment_client is None:
        _experiment_client = ExperimentClient(config=ClientConfig.from_settings())
    return _experiment_client


async def close_experiment_client() -> None:
    global _experiment_client
    if _experiment_client is not None:
        await _experiment_client.aclose()
        _experiment_client = None
