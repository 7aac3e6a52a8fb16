from .settings import MemoryConfig

__all__ = ["MemoryConfig"]
