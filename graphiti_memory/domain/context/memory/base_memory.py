from abc import ABC, abstractmethod
from typing import Dict, List


class ConversationMemory(ABC):
    """Memory capability a host workflow calls once before and once after each turn"""

    @property
    @abstractmethod
    def memory_keys(self) -> List[str]:
        """Keys present in every load_context result"""
        pass

    @abstractmethod
    async def load_context(self, utterance: str, session_id: str) -> Dict[str, str]:
        """Return the rendered context for an incoming utterance; never raises"""
        pass

    @abstractmethod
    async def save_turn(self, user_text: str, assistant_text: str, session_id: str) -> None:
        """Persist a completed user/assistant exchange; never raises"""
        pass

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Drop short-term state for the session"""
        pass
