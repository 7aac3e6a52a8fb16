"""
Graphiti Memory Service Client - transport only.

One method call issues exactly one HTTP request. Failures are classified into
EndpointNotFoundError (404) and RemoteUnavailableError (everything else);
retrying is left to the caller.
"""

from typing import Any, Dict, Optional, Type, TypeVar
from urllib.parse import quote
import asyncio
import time

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from graphiti_memory.config.settings import DEFAULT_TIMEOUT_SECONDS
from graphiti_memory.domain.errors import EndpointNotFoundError, RemoteUnavailableError
from graphiti_memory.domain.models.memory_models import (
    AppendRequest,
    EpisodesResponse,
    GroupedQueryResponse,
    LegacyQueryResponse,
    QueryRequest,
)
from graphiti_memory.infrastructure.observability.logging import (
    MemoryLogger,
    MetricsCollector,
    memory_logger,
)

logger = structlog.get_logger(__name__)

ResponseModel = TypeVar("ResponseModel", bound=BaseModel)

GROUPED_QUERY_PATH = "/memory/query/grouped"
LEGACY_QUERY_PATH = "/memory/query"
APPEND_PATH = "/memory/append"
EPISODES_PATH = "/memory/users/{user_id}/episodes"
HEALTH_PATH = "/health"


class GraphitiClient:
    """Async HTTP client for the Graphiti memory server"""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        event_logger: Optional[MemoryLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.api_url = api_url.rstrip("/")
        # Bounds the whole call; httpx.Timeout applies to each phase separately
        self.timeout = timeout
        self.event_logger = event_logger or memory_logger
        self.metrics = metrics or MetricsCollector(self.event_logger)
        self._http = httpx.AsyncClient(
            base_url=self.api_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Content-Type": "application/json",
                "X-API-KEY": api_key,
            },
            transport=transport,
        )

    async def __aenter__(self) -> "GraphitiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def query_grouped(self, request: QueryRequest) -> GroupedQueryResponse:
        """Query facts partitioned by source (file vs conversation)"""

        response = await self._request(
            "POST", GROUPED_QUERY_PATH, request.user_id, json=request.model_dump()
        )
        return self._parse(response, GroupedQueryResponse, GROUPED_QUERY_PATH)

    async def query_legacy(self, request: QueryRequest) -> LegacyQueryResponse:
        """Query facts from the flat pre-grouping endpoint"""

        response = await self._request(
            "POST", LEGACY_QUERY_PATH, request.user_id, json=request.model_dump()
        )
        return self._parse(response, LegacyQueryResponse, LEGACY_QUERY_PATH)

    async def get_episodes(self, user_id: str, limit: int) -> EpisodesResponse:
        """Fetch the most recent stored turns for a session"""

        path = EPISODES_PATH.format(user_id=quote(user_id, safe=""))
        response = await self._request(
            "GET", path, user_id, params={"limit": limit}, label=EPISODES_PATH
        )
        return self._parse(response, EpisodesResponse, path)

    async def append(self, request: AppendRequest) -> int:
        """Append one turn to long-term memory; returns the HTTP status"""

        response = await self._request(
            "POST", APPEND_PATH, request.user_id, json=request.model_dump(mode="json")
        )
        return response.status_code

    async def health_check(self) -> bool:
        """Check that the server is reachable and accepts the API key"""

        try:
            await self._request("GET", HEALTH_PATH, "")
        except RemoteUnavailableError as e:
            logger.warning("Graphiti health check failed", api_url=self.api_url, error=str(e))
            return False
        return True

    async def _request(
        self,
        method: str,
        path: str,
        session_id: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        label: Optional[str] = None,
    ) -> httpx.Response:
        # label keeps per-user paths out of metric names
        endpoint = label or path
        started = time.perf_counter()
        status_code = None

        try:
            response = await asyncio.wait_for(
                self._http.request(method, path, json=json, params=params), self.timeout
            )
            status_code = response.status_code
            if response.status_code == 404:
                raise EndpointNotFoundError(path)
            if response.is_error:
                raise RemoteUnavailableError(
                    f"{method} {path} returned HTTP {response.status_code}",
                    endpoint=path,
                    status_code=response.status_code,
                )
        except RemoteUnavailableError as e:
            self._record(endpoint, session_id, started, success=False, status_code=status_code, error=str(e))
            raise
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            self._record(endpoint, session_id, started, success=False, error="timeout")
            raise RemoteUnavailableError(f"{method} {path} timed out", endpoint=path) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            self._record(endpoint, session_id, started, success=False, error=str(e))
            raise RemoteUnavailableError(f"{method} {path} failed: {e}", endpoint=path) from e

        self._record(endpoint, session_id, started, success=True, status_code=status_code)
        return response

    def _parse(self, response: httpx.Response, model: Type[ResponseModel], path: str) -> ResponseModel:
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise RemoteUnavailableError(
                f"Malformed response from {path}: {e}",
                endpoint=path,
                status_code=response.status_code,
            ) from e

    def _record(
        self,
        path: str,
        session_id: str,
        started: float,
        success: bool,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
    ) -> None:
        duration_ms = (time.perf_counter() - started) * 1000
        self.metrics.record_latency(path, duration_ms, tags={"success": str(success).lower()})
        self.event_logger.log_remote_call(
            endpoint=path,
            session_id=session_id,
            duration_ms=round(duration_ms, 2),
            success=success,
            status_code=status_code,
            error=error,
        )
