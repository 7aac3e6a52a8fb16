"""
Adapter configuration.

Values normally come from the host node (credentials + node parameters);
``MemoryConfig.from_env`` covers standalone use.
"""

from typing import Any, Dict, Optional
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from graphiti_memory.domain.errors import ConfigurationError

DEFAULT_CONTEXT_WINDOW = 5
DEFAULT_SEARCH_LIMIT = 10
DEFAULT_MEMORY_KEY = "chat_history"
DEFAULT_TIMEOUT_SECONDS = 180.0  # Graphiti can be slow on large graphs
DEFAULT_SOURCE_TAG = "n8n"


class MemoryConfig(BaseModel):
    """Immutable adapter configuration"""
    model_config = ConfigDict(frozen=True)

    api_url: str = Field(min_length=1, description="Base URL of the Graphiti server")
    api_key: str = Field(min_length=1, description="Sent as X-API-KEY on every call")
    session_key: str = Field("", description="Session/user identifier scoping all state")
    context_window_length: int = Field(DEFAULT_CONTEXT_WINDOW, ge=1, le=50)
    search_limit: int = Field(DEFAULT_SEARCH_LIMIT, ge=1, le=100)
    memory_key: str = Field(DEFAULT_MEMORY_KEY, min_length=1)
    timeout_seconds: float = Field(DEFAULT_TIMEOUT_SECONDS, gt=0)
    source_tag: str = DEFAULT_SOURCE_TAG

    @classmethod
    def create(cls, **values: Any) -> "MemoryConfig":
        """Build a config, turning validation failures into ConfigurationError"""

        cleaned = {k: v for k, v in values.items() if v is not None}
        try:
            return cls(**cleaned)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ConfigurationError(f"Invalid memory configuration: {fields}") from e

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "MemoryConfig":
        """Read configuration from GRAPHITI_* environment variables"""

        values: Dict[str, Any] = {
            "api_url": os.getenv("GRAPHITI_API_URL"),
            "api_key": os.getenv("GRAPHITI_API_KEY"),
            "session_key": os.getenv("GRAPHITI_SESSION_KEY"),
            "context_window_length": os.getenv("GRAPHITI_CONTEXT_WINDOW"),
            "search_limit": os.getenv("GRAPHITI_SEARCH_LIMIT"),
            "memory_key": os.getenv("GRAPHITI_MEMORY_KEY"),
            "timeout_seconds": os.getenv("GRAPHITI_TIMEOUT_SECONDS"),
            "source_tag": os.getenv("GRAPHITI_SOURCE_TAG"),
        }
        values.update(overrides or {})
        return cls.create(**values)
