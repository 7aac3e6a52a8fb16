from .base_memory import ConversationMemory
from .short_term_buffer import ChatHistoryTurnBuffer, InProcessTurnBuffer, TurnBuffer

__all__ = ["ConversationMemory", "ChatHistoryTurnBuffer", "InProcessTurnBuffer", "TurnBuffer"]
