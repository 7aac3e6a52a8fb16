"""Graphiti conversational memory: short-term turns fused with long-term facts."""

from graphiti_memory.config.settings import MemoryConfig
from graphiti_memory.domain.context.context_manager import GraphitiChatMemory
from graphiti_memory.domain.errors import (
    BufferUnavailableError,
    ConfigurationError,
    EndpointNotFoundError,
    GraphitiMemoryError,
    RemoteUnavailableError,
)
from graphiti_memory.infrastructure.graphiti.client import GraphitiClient

__all__ = [
    "MemoryConfig",
    "GraphitiChatMemory",
    "GraphitiClient",
    "GraphitiMemoryError",
    "ConfigurationError",
    "RemoteUnavailableError",
    "EndpointNotFoundError",
    "BufferUnavailableError",
]
