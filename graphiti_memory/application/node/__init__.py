from .memory_node import MemoryNode

__all__ = ["MemoryNode"]
