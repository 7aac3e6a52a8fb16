from typing import Callable, Dict, List, Optional, Set
import asyncio

import httpx
import structlog

from graphiti_memory.config.settings import MemoryConfig
from graphiti_memory.domain.errors import (
    BufferUnavailableError,
    ConfigurationError,
    RemoteUnavailableError,
)
from graphiti_memory.domain.models.memory_models import (
    AppendMetadata,
    AppendRequest,
    RetrievedFacts,
    Role,
    Turn,
    WriteOutcome,
    utc_now,
)
from graphiti_memory.infrastructure.graphiti.client import GraphitiClient
from graphiti_memory.infrastructure.observability.logging import (
    MemoryLogger,
    MetricsCollector,
    memory_logger,
)
from .context_renderer import NO_HISTORY_PLACEHOLDER, ContextRenderer
from .context_retriever import ContextRetriever
from .memory.base_memory import ConversationMemory
from .memory.short_term_buffer import InProcessTurnBuffer, TurnBuffer

logger = structlog.get_logger(__name__)

WriteCallback = Callable[[WriteOutcome], None]


class GraphitiChatMemory(ConversationMemory):
    """Fuses the short-term turn buffer with Graphiti long-term memory.

    load_context queries facts and recent turns concurrently and renders them
    into a single string under `memory_key`. save_turn commits the exchange to
    the short-term buffer, then appends each side to Graphiti as independent
    background tasks. Neither call raises on remote or buffer failures.
    """

    def __init__(
        self,
        config: MemoryConfig,
        client: Optional[GraphitiClient] = None,
        buffer: Optional[TurnBuffer] = None,
        event_logger: Optional[MemoryLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        renderer: Optional[ContextRenderer] = None,
        on_write_complete: Optional[WriteCallback] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not isinstance(config, MemoryConfig):
            raise ConfigurationError("GraphitiChatMemory requires a MemoryConfig")

        self.config = config
        self.event_logger = event_logger or memory_logger
        self.metrics = metrics or MetricsCollector(self.event_logger)
        self._owns_client = client is None
        self.client = client or GraphitiClient(
            api_url=config.api_url,
            api_key=config.api_key,
            timeout=config.timeout_seconds,
            transport=transport,
            event_logger=self.event_logger,
            metrics=self.metrics,
        )
        self.buffer = buffer or InProcessTurnBuffer()
        self.renderer = renderer or ContextRenderer()
        self.retriever = ContextRetriever(
            client=self.client,
            buffer=self.buffer,
            search_limit=config.search_limit,
            context_window_length=config.context_window_length,
            event_logger=self.event_logger,
            metrics=self.metrics,
        )
        self.on_write_complete = on_write_complete
        self._pending_writes: Set["asyncio.Task[WriteOutcome]"] = set()

        logger.debug(
            "Memory adapter created",
            context_window_length=config.context_window_length,
            search_limit=config.search_limit,
            memory_key=config.memory_key,
        )

    @property
    def memory_key(self) -> str:
        return self.config.memory_key

    @property
    def memory_keys(self) -> List[str]:
        return [self.config.memory_key]

    async def load_context(self, utterance: str, session_id: str) -> Dict[str, str]:
        """Build the context block for an incoming utterance"""

        query = utterance if isinstance(utterance, str) else ""
        self.event_logger.log_memory_event("load_started", session_id, {"has_query": bool(query)})

        try:
            facts, turns = await asyncio.gather(
                self.retriever.retrieve_facts(query, session_id),
                self.retriever.retrieve_recent_turns(session_id),
                return_exceptions=True,
            )
            if isinstance(facts, Exception):
                self.event_logger.log_degradation(session_id, "fact_retrieval", str(facts))
                facts = RetrievedFacts()
            if isinstance(turns, Exception):
                self.event_logger.log_degradation(session_id, "turn_retrieval", str(turns))
                turns = []
            content = self.renderer.render(facts, turns)
        except Exception as e:
            logger.error("Error loading memory context", session_id=session_id, error=str(e))
            self.metrics.increment_counter("degraded", tags={"component": "load_context"})
            return {self.memory_key: NO_HISTORY_PLACEHOLDER}

        self.event_logger.log_memory_event(
            "load_completed",
            session_id,
            {"facts": facts.total, "fact_endpoint": facts.endpoint.value, "turns": len(turns)},
        )
        return {self.memory_key: content}

    async def save_turn(self, user_text: str, assistant_text: str, session_id: str) -> None:
        """Persist an exchange: short-term buffer now, long-term memory in the background"""

        try:
            timestamp = utc_now()
            turns = [
                Turn(role=role, content=str(text), timestamp=timestamp)
                for role, text in ((Role.USER, user_text), (Role.ASSISTANT, assistant_text))
                if text
            ]

            await self._commit_to_buffer(session_id, turns)

            for turn in turns:
                task = asyncio.ensure_future(self._append_turn(session_id, turn))
                self._pending_writes.add(task)
                task.add_done_callback(self._pending_writes.discard)

            self.event_logger.log_memory_event("save_scheduled", session_id, {"remote_writes": len(turns)})
        except Exception as e:
            # Memory failures must never interrupt the host workflow
            logger.error("Error saving memory context", session_id=session_id, error=str(e))

    async def clear(self, session_id: str) -> None:
        """Clear short-term memory; long-term facts are retained by the server"""

        try:
            await self.buffer.clear(session_id)
        except BufferUnavailableError as e:
            self.event_logger.log_degradation(session_id=session_id, component="short_term_buffer", error=str(e))
            return
        self.event_logger.log_memory_event("cleared", session_id)

    async def wait_for_writes(self) -> List[WriteOutcome]:
        """Wait for scheduled long-term appends; for tests and orderly shutdown"""

        pending = list(self._pending_writes)
        if not pending:
            return []
        return list(await asyncio.gather(*pending))

    async def aclose(self) -> None:
        await self.wait_for_writes()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "GraphitiChatMemory":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _commit_to_buffer(self, session_id: str, turns: List[Turn]) -> None:
        window = self.config.context_window_length
        try:
            size = await self.buffer.append(session_id, turns)
            evicted = await self.buffer.trim(session_id, window)
        except BufferUnavailableError as e:
            self.event_logger.log_degradation(session_id=session_id, component="short_term_buffer", error=str(e))
            return

        self.event_logger.log_buffer_update(session_id, "append", size=size - evicted, evicted=evicted)
        self.metrics.set_gauge("short_term_buffer.size", size - evicted)

    async def _append_turn(self, session_id: str, turn: Turn) -> WriteOutcome:
        request = AppendRequest(
            user_id=session_id,
            text=turn.content,
            role=turn.role,
            metadata=AppendMetadata(
                role=turn.role,
                source=self.config.source_tag,
                session_id=session_id,
                timestamp=turn.timestamp.isoformat(),
            ),
        )

        try:
            status_code = await self.client.append(request)
            outcome = WriteOutcome(session_id=session_id, role=turn.role, success=True, status_code=status_code)
        except RemoteUnavailableError as e:
            self.metrics.increment_counter("write_failed", tags={"role": turn.role.value})
            outcome = WriteOutcome(
                session_id=session_id,
                role=turn.role,
                success=False,
                status_code=e.status_code,
                error=str(e),
            )

        self.event_logger.log_write_outcome(
            session_id=session_id,
            role=turn.role.value,
            success=outcome.success,
            status_code=outcome.status_code,
            error=outcome.error,
        )
        self._notify(outcome)
        return outcome

    def _notify(self, outcome: WriteOutcome) -> None:
        if self.on_write_complete is None:
            return
        try:
            self.on_write_complete(outcome)
        except Exception as e:
            logger.warning("Write completion callback failed", session_id=outcome.session_id, error=str(e))
