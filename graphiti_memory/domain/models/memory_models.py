from typing import Dict, Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    """Speaker of a conversation turn"""
    USER = "user"
    ASSISTANT = "assistant"


class SourceType(str, Enum):
    """Provenance of a group of long-term facts"""
    FILE = "file"
    CONVERSATION = "conversation"


class FactEndpoint(str, Enum):
    """Which fact query endpoint produced a result"""
    GROUPED = "grouped"
    LEGACY = "legacy"
    NONE = "none"


class Turn(BaseModel):
    """One utterance held in the short-term buffer"""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def speaker(self) -> str:
        return "User" if self.role == Role.USER else "Assistant"


class Fact(BaseModel):
    """Unit of long-term knowledge returned by the memory service"""
    fact: str
    score: float = Field(0.0, description="Relevance score reported by the service")
    uuid: str = ""
    created_at: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class SourceGroup(BaseModel):
    """Facts sharing one provenance"""
    # Unknown provenance kinds are kept as plain strings and not rendered
    source_type: Union[SourceType, str] = Field(union_mode="left_to_right")
    source_name: Optional[str] = None
    facts: List[Fact] = Field(default_factory=list)


class QueryRequest(BaseModel):
    """Body of both fact query endpoints"""
    user_id: str
    query: str
    limit: int


class GroupedQueryResponse(BaseModel):
    groups: List[SourceGroup] = Field(default_factory=list)
    total_facts: int = 0


class LegacyQueryResponse(BaseModel):
    hits: List[Fact] = Field(default_factory=list)
    total: int = 0


class Episode(BaseModel):
    """Stored conversation turn as returned by the episodes endpoint"""
    id: Optional[str] = None
    content: str
    role: str = Role.ASSISTANT.value
    timestamp: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def to_turn(self) -> Turn:
        role = Role.USER if self.role == Role.USER.value else Role.ASSISTANT
        if self.timestamp:
            try:
                return Turn(role=role, content=self.content, timestamp=self.timestamp)
            except ValueError:
                pass
        return Turn(role=role, content=self.content)


class EpisodesResponse(BaseModel):
    episodes: List[Episode] = Field(default_factory=list)
    total: Optional[int] = None


class AppendMetadata(BaseModel):
    role: Role
    source: str
    session_id: str
    timestamp: str


class AppendRequest(BaseModel):
    """Body of the append endpoint"""
    user_id: str
    text: str
    role: Role
    metadata: AppendMetadata


class RetrievedFacts(BaseModel):
    """Outcome of one fact query, grouped or flat"""
    endpoint: FactEndpoint = FactEndpoint.NONE
    groups: List[SourceGroup] = Field(default_factory=list)
    hits: List[Fact] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(len(g.facts) for g in self.groups) + len(self.hits)

    def is_empty(self) -> bool:
        return self.total == 0


class WriteOutcome(BaseModel):
    """Result of one long-term append attempt"""
    session_id: str
    role: Role
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    completed_at: datetime = Field(default_factory=utc_now)
