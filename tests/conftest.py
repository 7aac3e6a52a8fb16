import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from graphiti_memory.config.settings import MemoryConfig
from graphiti_memory.domain.context.context_manager import GraphitiChatMemory
from graphiti_memory.infrastructure.graphiti.client import GraphitiClient

API_URL = "http://graphiti.test"
API_KEY = "test-key"


class FakeGraphitiServer:
    """Scriptable stand-in for the Graphiti HTTP API.

    Each endpoint answers with a configured (status, body) pair or raises the
    configured httpx exception. Appended turns are stored and served back from
    the episodes endpoint, newest last.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.grouped: Tuple[int, Any] = (200, {"groups": [], "total_facts": 0})
        self.legacy: Tuple[int, Any] = (200, {"hits": [], "total": 0})
        self.episodes: Optional[Tuple[int, Any]] = None
        self.health_status = 200
        self.append_status: Dict[str, int] = {"user": 200, "assistant": 200}
        self.raise_on: Dict[str, Exception] = {}
        self.appended: List[Dict[str, Any]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.raise_on:
            raise self.raise_on[path]

        if path == "/memory/query/grouped":
            return self._respond(*self.grouped)
        if path == "/memory/query":
            return self._respond(*self.legacy)
        if path == "/memory/append":
            body = json.loads(request.content)
            status = self.append_status.get(body["role"], 200)
            if status < 400:
                self.appended.append(body)
            return httpx.Response(status, json={"ok": status < 400})
        if path.startswith("/memory/users/") and path.endswith("/episodes"):
            if self.episodes is not None:
                return self._respond(*self.episodes)
            limit = int(request.url.params.get("limit", "5"))
            user_id = path.split("/")[3]
            episodes = [
                {"content": a["text"], "role": a["role"], "timestamp": a["metadata"]["timestamp"]}
                for a in self.appended
                if a["user_id"] == user_id
            ][-limit:]
            return httpx.Response(200, json={"episodes": episodes, "total": len(episodes)})
        if path == "/health":
            return httpx.Response(self.health_status, json={"status": "ok"})

        return httpx.Response(404, json={"detail": "Not Found"})

    @staticmethod
    def _respond(status: int, body: Any) -> httpx.Response:
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def calls_matching(self, suffix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]


def fact(text: str, score: float, uid: str = "f") -> Dict[str, Any]:
    return {"fact": text, "score": score, "uuid": uid, "created_at": "2024-05-01T10:00:00Z"}


@pytest.fixture
def server() -> FakeGraphitiServer:
    return FakeGraphitiServer()


@pytest.fixture
def transport(server: FakeGraphitiServer) -> httpx.MockTransport:
    return httpx.MockTransport(server.handler)


@pytest.fixture
def config() -> MemoryConfig:
    return MemoryConfig.create(
        api_url=API_URL,
        api_key=API_KEY,
        session_key="s1",
        context_window_length=4,
        search_limit=3,
    )


@pytest.fixture
async def client(transport):
    async with GraphitiClient(API_URL, API_KEY, timeout=5, transport=transport) as graphiti:
        yield graphiti


@pytest.fixture
async def memory(config, transport):
    adapter = GraphitiChatMemory(config, transport=transport)
    yield adapter
    await adapter.aclose()
