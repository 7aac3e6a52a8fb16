# Session = the opaque key scoping both the short-term buffer and every
# remote query or write. Created lazily on first use, never destroyed here.

from .session_resolver import SessionResolver

__all__ = ["SessionResolver"]
