"""Persistence Layer"""

from .memory import InMemoryLedgerStore
from .redis import RedisLedgerStore

__all__ = ["InMemoryLedgerStore", "RedisLedgerStore"]
