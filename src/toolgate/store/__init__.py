"""
Persistence for security state.

Implementations:
    - MemoryStore: process-local, the default
    - SQLiteStore: single-file database for durable audit trails
"""

from toolgate.store.base import SecurityStore
from toolgate.store.db import SQLiteStore
from toolgate.store.memory import MemoryStore

__all__ = ["MemoryStore", "SQLiteStore", "SecurityStore"]
