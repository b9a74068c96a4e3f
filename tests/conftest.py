import inspect
from typing import Any

import httpx
import pytest

from skill_console.connectors.skills_api import SkillsAPIClient
from skill_console.core.console import SkillConsole
from skill_console.schemas.skill import SkillInfo

BASE_URL = "http://skills.test"
LIST_ROUTE = ("GET", "/api/skills")


def _skill_payload(name: str = "git-tool", definition: dict | None = None, **fields: Any) -> dict:
    payload: dict[str, Any] = {
        "def": {
            "name": name,
            "description": f"{name} automation",
            "version": "1.0.0",
            "enabled": True,
            "tags": ["dev"],
            "requires": {"bins": [], "env": []},
            "install": [],
            "metadata": {},
        },
        "format": "standard",
        "status": "ready",
        "canRun": True,
        "missingBins": [],
        "missingEnv": [],
        "successCount": 3,
        "errorCount": 1,
        "avgExecutionMs": 120,
    }
    if definition:
        payload["def"].update(definition)
    payload.update(fields)
    return payload


def _snapshot_payload(*skills: dict, reindexing: bool = False, error: str = "") -> dict:
    return {
        "skills": list(skills),
        "count": len(skills),
        "isReIndexing": reindexing,
        "reIndexError": error,
    }


class FakeBackend:
    """In-memory stand-in for the registry API, served through httpx.MockTransport.

    List responses come from a queue; the last entry repeats once the queue is
    down to one. A queued int is answered as that bare status code.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Any] = {}
        self.snapshots: list[dict | int] = [_snapshot_payload()]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def route(self, method: str, path: str, handler: Any) -> None:
        self.routes[(method, path)] = handler

    def ok(self, method: str, path: str) -> None:
        self.route(method, path, lambda request: httpx.Response(200, json={"success": True}))

    def fail(self, method: str, path: str, status: int = 500, body: Any = None) -> None:
        self.route(method, path, lambda request: httpx.Response(status, json=body or {}))

    def queue_snapshots(self, *payloads: dict | int) -> None:
        self.snapshots = list(payloads)

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)

    def last(self, method: str, path: str) -> httpx.Request:
        return [r for r in self.requests if r.method == method and r.url.path == path][-1]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        handler = self.routes.get(key)
        if handler is None and key == LIST_ROUTE:
            item = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
            if isinstance(item, int):
                return httpx.Response(item, json={"error": "unavailable"})
            return httpx.Response(200, json=item)
        if handler is None:
            return httpx.Response(404, json={"error": "skill not found"})
        result = handler(request)
        if inspect.isawaitable(result):
            result = await result
        return result


@pytest.fixture
def skill_payload():
    return _skill_payload


@pytest.fixture
def snapshot_payload():
    return _snapshot_payload


@pytest.fixture
def make_skill():
    def factory(name: str = "git-tool", **kwargs: Any) -> SkillInfo:
        return SkillInfo.model_validate(_skill_payload(name, **kwargs))

    return factory


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend):
    return SkillsAPIClient(base_url=BASE_URL, timeout=5, transport=backend.transport)


@pytest.fixture
def console(client):
    return SkillConsole(client, poll_interval=0)


@pytest.fixture
def git_tool_backend(backend):
    """The registry holds one broken skill, ``git-tool``, missing the git binary."""
    broken = _skill_payload("git-tool", status="error", canRun=False, missingBins=["git"])
    fixed = _skill_payload("git-tool", status="installed", canRun=True, missingBins=[])
    backend.queue_snapshots(_snapshot_payload(broken), _snapshot_payload(fixed))
    return backend
