"""
Test configuration and fixtures

Two ways to stand in for the LaikaTest API:
- RecordingExecutor: scripted responses, no HTTP at all
- create_fake_laikatest_app(): a FastAPI app reached through
  httpx.ASGITransport, exercising the real httpx executor
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlsplit

import httpx
import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from laikatest import ExperimentClient, HttpxRequestExecutor, TransportResponse

TEST_API_KEY = "test-key"
TEST_BASE_URL = "http://laikatest.test"


# ============================================================
# Scripted executor
# ============================================================


@dataclass
class RecordedCall:
    method: str
    url: str
    headers: Dict[str, str]
    json: Optional[Any]
    timeout: float

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def query(self) -> Dict[str, str]:
        return dict(parse_qsl(urlsplit(self.url).query))


@dataclass
class ScriptedResponse:
    status_code: int = 200
    body: Any = None
    text: Optional[str] = None
    error: Optional[BaseException] = None
    delay: float = 0.0


class RecordingExecutor:
    """RequestExecutor that records calls and replays per-route responses"""

    def __init__(self):
        self.calls: List[RecordedCall] = []
        self.closed = False
        self._routes: Dict[tuple, ScriptedResponse] = {}

    def set_response(
        self,
        method: str,
        path: str,
        body: Any = None,
        status_code: int = 200,
        text: Optional[str] = None,
        delay: float = 0.0,
    ) -> None:
        self._routes[(method, path)] = ScriptedResponse(
            status_code=status_code, body=body, text=text, delay=delay
        )

    def set_error(self, method: str, path: str, error: BaseException) -> None:
        self._routes[(method, path)] = ScriptedResponse(error=error)

    def calls_to(self, method: str, path: str) -> List[RecordedCall]:
        return [c for c in self.calls if c.method == method and c.path == path]

    async def execute(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float,
    ) -> TransportResponse:
        call = RecordedCall(method=method, url=url, headers=headers, json=json, timeout=timeout)
        self.calls.append(call)

        scripted = self._routes.get((method, call.path))
        if scripted is None:
            raise AssertionError(f"unexpected request {method} {call.path}")

        if scripted.delay:
            await asyncio.sleep(scripted.delay)
        if scripted.error is not None:
            raise scripted.error

        text = scripted.text if scripted.text is not None else _encode(scripted.body)
        return TransportResponse(status_code=scripted.status_code, text=text)

    async def aclose(self) -> None:
        self.closed = True


def _encode(body: Any) -> str:
    # execute() shadows the json module with its json= argument
    return json.dumps(body)


def make_assignment(assignment_id: str = "assign-123", **overrides: Any) -> Dict[str, Any]:
    data = {
        "prompt_content": "You are a helpful assistant",
        "variant_name": "control",
        "variant_id": "variant-1",
        "is_control": True,
        "assignment_id": assignment_id,
        "prompt_metadata": {
            "prompt_id": "prompt-1",
            "prompt_name": "support-bot",
            "prompt_version_id": "pv-1",
            "version_number": 3,
            "version_changelog": "tone tweaks",
        },
        "experiment_metadata": {
            "experiment_id": "exp-123",
            "experiment_name": "Support tone",
            "split_type": "user",
            "identifier_used": "user-456",
        },
    }
    data.update(overrides)
    return data


def prompt_path(experiment_id: str) -> str:
    return f"/api/v1/experiments/{experiment_id}/prompt"


def events_query_path(experiment_id: str) -> str:
    return f"/api/v1/experiments/{experiment_id}/events"


EVENTS_PATH = "/api/v1/events"


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest_asyncio.fixture
async def client(executor: RecordingExecutor):
    """Client wired to the scripted executor"""
    client = ExperimentClient(TEST_API_KEY, base_url=TEST_BASE_URL, executor=executor)
    yield client
    await client.aclose()


# ============================================================
# Fake LaikaTest service (FastAPI)
# ============================================================


@dataclass
class FakeServerState:
    requests: List[Dict[str, Any]] = field(default_factory=list)
    events: List[Dict[str, Any]] = field(default_factory=list)
    include_meta: bool = True
    assignment_counter: int = 0

    def requests_to(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["method"] == method and r["path"] == path]


def create_fake_laikatest_app(api_key: str = TEST_API_KEY) -> tuple:
    """FastAPI app speaking the LaikaTest envelope format"""
    state = FakeServerState()

    async def record_and_authenticate(request: Request):
        body = await request.body()
        state.requests.append(
            {
                "method": request.method,
                "path": request.url.path,
                "query": dict(request.query_params),
                "headers": dict(request.headers),
                "body": json.loads(body) if body else None,
            }
        )
        if request.headers.get("authorization") != f"Bearer {api_key}":
            raise HTTPException(status_code=401, detail="Invalid API key")

    app = FastAPI(title="Fake LaikaTest API", dependencies=[Depends(record_and_authenticate)])

    @app.exception_handler(StarletteHTTPException)
    async def envelope_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"success": False, "error": exc.detail}, status_code=exc.status_code)

    @app.post("/api/v1/experiments/{experiment_id}/prompt")
    async def assign_prompt(experiment_id: str, request: Request):
        payload = await request.json()
        if experiment_id == "missing":
            raise HTTPException(status_code=404, detail="Experiment not found")

        state.assignment_counter += 1
        split_type = payload["split_type"]
        identifier = payload.get("user_id") or payload.get("session_id") or "random"
        return {
            "success": True,
            "data": make_assignment(
                assignment_id=f"assign-{state.assignment_counter}",
                variant_name="variant_a" if state.assignment_counter % 2 else "control",
                is_control=not state.assignment_counter % 2,
                experiment_metadata={
                    "experiment_id": experiment_id,
                    "split_type": split_type,
                    "identifier_used": identifier,
                },
            ),
        }

    @app.post("/api/v1/events")
    async def record_event(request: Request):
        payload = await request.json()
        event_id = f"event-{len(state.events) + 1}"
        state.events.append({"id": event_id, **payload})
        return {"success": True, "data": {"id": event_id, "message": "Event recorded"}}

    @app.get("/api/v1/experiments/{experiment_id}/events")
    async def list_events(experiment_id: str, page: int = 1, limit: int = 50):
        body: Dict[str, Any] = {
            "success": True,
            "data": [
                {
                    "id": e["id"],
                    "experiment_id": experiment_id,
                    "assignment_id": e.get("assignment_id"),
                    "outcome": e.get("outcome"),
                    "score": e.get("score"),
                    "feedback": e.get("user_feedback"),
                    "created_at": "2024-01-01T00:00:00Z",
                }
                for e in state.events
            ],
        }
        if state.include_meta:
            body["meta"] = {"total": len(state.events), "page": page, "limit": limit}
        return body

    return app, state


@pytest_asyncio.fixture
async def fake_service():
    """(client, state) pair backed by the FastAPI fake over ASGITransport"""
    app, state = create_fake_laikatest_app()
    executor = HttpxRequestExecutor(transport=httpx.ASGITransport(app=app))
    client = ExperimentClient(TEST_API_KEY, base_url=TEST_BASE_URL, executor=executor)

    yield client, state

    await client.aclose()
    await executor.aclose()


class FakeClock:
    """Manually advanced monotonic clock, in seconds"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
