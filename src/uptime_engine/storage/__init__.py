from __future__ import annotations

from uptime_engine.storage.base import StoragePort
from uptime_engine.storage.memory import InMemoryStore
from uptime_engine.storage.retry import retry_write
from uptime_engine.storage.sql import SqlAlchemyStore

__all__ = [
    "StoragePort",
    "InMemoryStore",
    "SqlAlchemyStore",
    "retry_write",
]
