# This module handles context fusion for one conversation turn

# +---------------------+        +---------------------+
# |  Long-term memory   |        |  Short-term buffer  |
# |---------------------|        |---------------------|
# | Graphiti facts      |        | Last N raw turns    |
# | (grouped / legacy)  |        | (episodes fallback) |
# +---------------------+        +---------------------+
#            \                          /
#             \                        /
#              v                      v
# +----------------------------------------------+
# |              Rendered context                |
# |----------------------------------------------|
# | === Relevant Facts from Long-term Memory === |
# | === Recent Conversation ===                  |
# +----------------------------------------------+
#         |
#         v
#   [host prompt, keyed by memory_key]

from .context_manager import GraphitiChatMemory
from .context_renderer import ContextRenderer, NO_HISTORY_PLACEHOLDER
from .context_retriever import ContextRetriever

__all__ = ["GraphitiChatMemory", "ContextRenderer", "ContextRetriever", "NO_HISTORY_PLACEHOLDER"]
