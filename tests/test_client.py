import asyncio
import json
import time

import httpx
import pytest

from graphiti_memory.domain.errors import EndpointNotFoundError, RemoteUnavailableError
from graphiti_memory.domain.models.memory_models import (
    AppendMetadata,
    AppendRequest,
    QueryRequest,
    Role,
    SourceType,
)
from graphiti_memory.infrastructure.graphiti.client import GraphitiClient

from .conftest import API_KEY, API_URL, fact


async def test_grouped_query_sends_auth_header_and_parses_groups(client, server):
    server.grouped = (200, {
        "groups": [{"source_type": "file", "source_name": "notes.md", "facts": [fact("a", 0.9)]}],
        "total_facts": 1,
    })

    response = await client.query_grouped(QueryRequest(user_id="s1", query="hi", limit=3))

    assert response.total_facts == 1
    assert response.groups[0].source_type == SourceType.FILE
    assert response.groups[0].facts[0].fact == "a"

    request = server.calls("/memory/query/grouped")[0]
    assert request.headers["X-API-KEY"] == API_KEY
    assert json.loads(request.content) == {"user_id": "s1", "query": "hi", "limit": 3}


async def test_404_is_classified_as_endpoint_not_found(client, server):
    server.grouped = (404, {"detail": "Not Found"})

    with pytest.raises(EndpointNotFoundError) as exc_info:
        await client.query_grouped(QueryRequest(user_id="s1", query="hi", limit=3))

    assert exc_info.value.status_code == 404


@pytest.mark.parametrize("status", [401, 500, 503])
async def test_other_error_statuses_are_remote_unavailable(client, server, status):
    server.grouped = (status, {"detail": "nope"})

    with pytest.raises(RemoteUnavailableError) as exc_info:
        await client.query_grouped(QueryRequest(user_id="s1", query="hi", limit=3))

    assert not isinstance(exc_info.value, EndpointNotFoundError)
    assert exc_info.value.status_code == status


async def test_timeout_is_remote_unavailable(client, server):
    server.raise_on["/memory/query"] = httpx.ReadTimeout("slow")

    with pytest.raises(RemoteUnavailableError):
        await client.query_legacy(QueryRequest(user_id="s1", query="hi", limit=3))


async def test_malformed_body_is_remote_unavailable(client, server):
    server.legacy = (200, "<html>not json</html>")

    with pytest.raises(RemoteUnavailableError):
        await client.query_legacy(QueryRequest(user_id="s1", query="hi", limit=3))


async def test_episodes_request_is_session_scoped_with_limit(client, server):
    server.episodes = (200, {"episodes": [{"content": "hello", "role": "user", "timestamp": "2024-05-01T10:00:00Z"}]})

    response = await client.get_episodes("user 42", limit=7)

    assert [e.content for e in response.episodes] == ["hello"]
    request = server.requests[-1]
    assert request.url.raw_path.startswith(b"/memory/users/user%2042/episodes")
    assert request.url.params["limit"] == "7"


async def test_append_posts_turn_with_metadata(client, server):
    request = AppendRequest(
        user_id="s1",
        text="hello",
        role=Role.USER,
        metadata=AppendMetadata(role=Role.USER, source="n8n", session_id="s1", timestamp="2024-05-01T10:00:00+00:00"),
    )

    status = await client.append(request)

    assert status == 200
    assert server.appended == [{
        "user_id": "s1",
        "text": "hello",
        "role": "user",
        "metadata": {"role": "user", "source": "n8n", "session_id": "s1", "timestamp": "2024-05-01T10:00:00+00:00"},
    }]


async def test_health_check_reports_reachability(client, server):
    assert await client.health_check() is True

    server.health_status = 401
    assert await client.health_check() is False

    server.raise_on["/health"] = httpx.ConnectError("refused")
    assert await client.health_check() is False


async def test_remote_calls_are_timed(server):
    transport = httpx.MockTransport(server.handler)
    async with GraphitiClient(API_URL, API_KEY, transport=transport) as graphiti:
        await graphiti.get_episodes("s1", limit=2)
        await graphiti.get_episodes("s2", limit=2)

    summary = graphiti.metrics.get_metrics_summary()
    assert summary["latency./memory/users/{user_id}/episodes"]["count"] == 2


async def test_slow_response_is_cut_off_at_the_overall_timeout():
    async def trickling_server(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={"hits": [], "total": 0})

    transport = httpx.MockTransport(trickling_server)
    async with GraphitiClient(API_URL, API_KEY, timeout=0.05, transport=transport) as graphiti:
        started = time.perf_counter()
        with pytest.raises(RemoteUnavailableError) as exc_info:
            await graphiti.query_legacy(QueryRequest(user_id="s1", query="hi", limit=3))

    assert time.perf_counter() - started < 0.5
    assert "timed out" in str(exc_info.value)
