from abc import ABC, abstractmethod
from typing import Dict, List
from datetime import datetime
import asyncio
from collections import defaultdict

import structlog
from langchain_core.chat_history import BaseChatMessageHistory
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from graphiti_memory.domain.errors import BufferUnavailableError
from graphiti_memory.domain.models.memory_models import Role, Turn

logger = structlog.get_logger(__name__)


class TurnBuffer(ABC):
    """Bounded, ordered short-term store of raw conversation turns"""

    @abstractmethod
    async def append(self, session_id: str, turns: List[Turn]) -> int:
        """Append turns in order and return the new length"""
        pass

    @abstractmethod
    async def trim(self, session_id: str, max_entries: int) -> int:
        """Evict oldest entries beyond max_entries; return how many were evicted"""
        pass

    @abstractmethod
    async def recent(self, session_id: str, limit: int) -> List[Turn]:
        """Return the newest `limit` turns, oldest first"""
        pass

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        pass


class InProcessTurnBuffer(TurnBuffer):
    """Turn buffer held in process memory for the adapter's lifetime"""

    def __init__(self):
        self.conversations: Dict[str, List[Turn]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def append(self, session_id: str, turns: List[Turn]) -> int:
        async with self._lock:
            self.conversations[session_id].extend(turns)
            return len(self.conversations[session_id])

    async def trim(self, session_id: str, max_entries: int) -> int:
        async with self._lock:
            conversation = self.conversations.get(session_id, [])
            overflow = len(conversation) - max_entries
            if overflow <= 0:
                return 0
            self.conversations[session_id] = conversation[overflow:]
            return overflow

    async def recent(self, session_id: str, limit: int) -> List[Turn]:
        async with self._lock:
            conversation = self.conversations.get(session_id, [])
            return list(conversation[-limit:]) if limit > 0 else []

    async def clear(self, session_id: str) -> None:
        async with self._lock:
            self.conversations.pop(session_id, None)


class ChatHistoryTurnBuffer(TurnBuffer):
    """Turn buffer delegated to a host-provided LangChain chat history.

    The host history already belongs to a single session, so `session_id` is
    accepted for interface compatibility only. Any failure of the host store
    is raised as BufferUnavailableError.
    """

    def __init__(self, chat_history: BaseChatMessageHistory):
        self.chat_history = chat_history

    async def append(self, session_id: str, turns: List[Turn]) -> int:
        try:
            await self.chat_history.aadd_messages([self._to_message(t) for t in turns])
            messages = await self.chat_history.aget_messages()
        except Exception as e:
            raise BufferUnavailableError(f"Chat history append failed: {e}") from e
        return len(messages)

    async def trim(self, session_id: str, max_entries: int) -> int:
        try:
            messages = list(await self.chat_history.aget_messages())
            overflow = len(messages) - max_entries
            if overflow <= 0:
                return 0
            await self.chat_history.aclear()
        except Exception as e:
            raise BufferUnavailableError(f"Chat history trim failed: {e}") from e

        try:
            await self.chat_history.aadd_messages(messages[overflow:])
        except Exception as e:
            # Put the untrimmed history back so a failed eviction loses nothing
            await self._restore(messages)
            raise BufferUnavailableError(f"Chat history trim failed: {e}") from e
        return overflow

    async def _restore(self, messages: List[BaseMessage]) -> None:
        try:
            await self.chat_history.aclear()
            await self.chat_history.aadd_messages(messages)
        except Exception as e:
            logger.error("Chat history restore failed", lost_messages=len(messages), error=str(e))

    async def recent(self, session_id: str, limit: int) -> List[Turn]:
        if limit <= 0:
            return []
        try:
            messages = await self.chat_history.aget_messages()
            return [self._to_turn(m) for m in messages[-limit:]]
        except Exception as e:
            raise BufferUnavailableError(f"Chat history read failed: {e}") from e

    async def clear(self, session_id: str) -> None:
        try:
            await self.chat_history.aclear()
        except Exception as e:
            raise BufferUnavailableError(f"Chat history clear failed: {e}") from e

    @staticmethod
    def _to_message(turn: Turn) -> BaseMessage:
        kwargs = {"timestamp": turn.timestamp.isoformat()}
        if turn.role == Role.USER:
            return HumanMessage(content=turn.content, additional_kwargs=kwargs)
        return AIMessage(content=turn.content, additional_kwargs=kwargs)

    @staticmethod
    def _to_turn(message: BaseMessage) -> Turn:
        role = Role.USER if message.type == "human" else Role.ASSISTANT
        content = message.content if isinstance(message.content, str) else str(message.content)
        timestamp = message.additional_kwargs.get("timestamp")
        if timestamp:
            return Turn(role=role, content=content, timestamp=datetime.fromisoformat(timestamp))
        return Turn(role=role, content=content)
