"""
Host workflow integration.

A workflow item is a JSON-like dict. Items carrying only an input are treated
as queries (context is loaded and attached); items carrying both an input and
a response are treated as completed turns (the exchange is saved).
"""

from typing import Any, Dict, List, Optional
import httpx
import structlog

from graphiti_memory.config.settings import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MEMORY_KEY,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_TIMEOUT_SECONDS,
    MemoryConfig,
)
from graphiti_memory.domain.context.context_manager import GraphitiChatMemory
from graphiti_memory.domain.context.memory.short_term_buffer import InProcessTurnBuffer, TurnBuffer
from graphiti_memory.domain.context.session.session_resolver import SessionResolver
from graphiti_memory.infrastructure.observability.logging import (
    MemoryLogger,
    memory_logger,
    setup_logging,
)

logger = structlog.get_logger(__name__)

INPUT_FIELDS = ("input", "question", "message")
RESPONSE_FIELDS = ("response", "output", "answer")


def first_present(item: Dict[str, Any], fields) -> str:
    for field in fields:
        value = item.get(field)
        if value:
            return str(value)
    return ""


class MemoryNode:
    """Runs the memory adapter over a batch of workflow items"""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        context_window_length: int = DEFAULT_CONTEXT_WINDOW,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
        memory_key: str = DEFAULT_MEMORY_KEY,
        session_key_field: str = "sessionId",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        continue_on_fail: bool = False,
        buffer: Optional[TurnBuffer] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        event_logger: Optional[MemoryLogger] = None,
        log_level: Optional[str] = None,
        log_format: str = "json",
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.context_window_length = context_window_length
        self.search_limit = search_limit
        self.memory_key = memory_key
        self.session_key_field = session_key_field
        self.timeout_seconds = timeout_seconds
        self.continue_on_fail = continue_on_fail
        # Shared across items so short-term memory survives between turns
        self.buffer = buffer or InProcessTurnBuffer()
        self.transport = transport
        self.event_logger = event_logger or memory_logger
        self.session_resolver = SessionResolver()

        # Hosts that already configure logging leave log_level unset
        if log_level:
            setup_logging(log_level=log_level, log_format=log_format)

    async def process_items(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Process each item independently and return the output items"""

        results = []

        for index, item in enumerate(items):
            try:
                results.append(await self.process_item(item))
            except Exception as e:
                if not self.continue_on_fail:
                    raise
                logger.error("Memory node item failed", item_index=index, error=str(e))
                results.append({**item, "error": str(e) or "Unknown error"})

        return results

    async def process_item(self, item: Dict[str, Any]) -> Dict[str, Any]:
        """Load or save memory for a single item"""

        session_id = self.session_resolver.resolve(item.get(self.session_key_field))
        config = MemoryConfig.create(
            api_url=self.api_url,
            api_key=self.api_key,
            session_key=session_id,
            context_window_length=self.context_window_length,
            search_limit=self.search_limit,
            memory_key=self.memory_key,
            timeout_seconds=self.timeout_seconds,
        )

        user_input = first_present(item, INPUT_FIELDS)
        ai_response = first_present(item, RESPONSE_FIELDS)
        result = dict(item)

        with structlog.contextvars.bound_contextvars(session_id=session_id):
            async with GraphitiChatMemory(
                config,
                buffer=self.buffer,
                transport=self.transport,
                event_logger=self.event_logger,
            ) as memory:
                if user_input and not ai_response:
                    variables = await memory.load_context(user_input, session_id)
                    result["memory"] = variables
                    result[self.memory_key] = variables[self.memory_key]
                elif user_input and ai_response:
                    await memory.save_turn(user_input, ai_response, session_id)
                    result["memorySaved"] = True

        result["sessionId"] = session_id
        return result
