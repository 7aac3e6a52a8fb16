from typing import List, Optional
import structlog

from graphiti_memory.domain.errors import (
    BufferUnavailableError,
    EndpointNotFoundError,
    RemoteUnavailableError,
)
from graphiti_memory.domain.models.memory_models import (
    FactEndpoint,
    QueryRequest,
    RetrievedFacts,
    Turn,
)
from graphiti_memory.infrastructure.graphiti.client import GraphitiClient
from graphiti_memory.infrastructure.observability.logging import (
    MemoryLogger,
    MetricsCollector,
    memory_logger,
)
from .memory.short_term_buffer import TurnBuffer

logger = structlog.get_logger(__name__)


class ContextRetriever:
    """Retrieves long-term facts and recent turns, degrading each source independently"""

    def __init__(
        self,
        client: GraphitiClient,
        buffer: TurnBuffer,
        search_limit: int,
        context_window_length: int,
        event_logger: Optional[MemoryLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.client = client
        self.buffer = buffer
        self.search_limit = search_limit
        self.context_window_length = context_window_length
        self.event_logger = event_logger or memory_logger
        self.metrics = metrics or MetricsCollector(self.event_logger)

    async def retrieve_facts(self, query: str, session_id: str) -> RetrievedFacts:
        """Query long-term facts: grouped endpoint first, legacy endpoint only on 404"""

        if not query:
            return RetrievedFacts()

        request = QueryRequest(user_id=session_id, query=query, limit=self.search_limit)

        try:
            grouped = await self.client.query_grouped(request)
        except EndpointNotFoundError:
            self.event_logger.log_fallback(
                session_id=session_id,
                from_source="grouped_query",
                to_source="legacy_query",
                reason="endpoint_not_found",
            )
            self.metrics.increment_counter("fallback.legacy_query")
            return await self._retrieve_legacy_facts(request)
        except RemoteUnavailableError as e:
            self._degraded(session_id, "grouped_query", e)
            return RetrievedFacts()

        logger.info(
            "Found relevant facts",
            session_id=session_id,
            total_facts=grouped.total_facts,
            groups=len(grouped.groups),
        )
        return RetrievedFacts(endpoint=FactEndpoint.GROUPED, groups=grouped.groups)

    async def _retrieve_legacy_facts(self, request: QueryRequest) -> RetrievedFacts:
        try:
            legacy = await self.client.query_legacy(request)
        except RemoteUnavailableError as e:
            self._degraded(request.user_id, "legacy_query", e)
            return RetrievedFacts()

        logger.info("Found relevant facts (legacy endpoint)", session_id=request.user_id, hits=len(legacy.hits))
        return RetrievedFacts(endpoint=FactEndpoint.LEGACY, hits=legacy.hits)

    async def retrieve_recent_turns(self, session_id: str) -> List[Turn]:
        """Recent turns from the episodes endpoint, else from the short-term buffer"""

        try:
            response = await self.client.get_episodes(session_id, self.context_window_length)
            return [episode.to_turn() for episode in response.episodes]
        except RemoteUnavailableError as e:
            self.event_logger.log_fallback(
                session_id=session_id,
                from_source="episodes",
                to_source="short_term_buffer",
                reason=str(e),
            )
            self.metrics.increment_counter("fallback.short_term_buffer")

        try:
            return await self.buffer.recent(session_id, self.context_window_length)
        except BufferUnavailableError as e:
            self._degraded(session_id, "short_term_buffer", e)
            return []

    def _degraded(self, session_id: str, component: str, error: Exception) -> None:
        self.metrics.increment_counter("degraded", tags={"component": component})
        self.event_logger.log_degradation(session_id=session_id, component=component, error=str(error))
