"""
__init__.py for context package
"""

from .memory_store import MemoryStore
from .sqlite_store import SqliteSessionStore

__all__ = ["MemoryStore", "SqliteSessionStore"]
