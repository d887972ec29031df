"""Redis Persistence Layer

Concrete implementation of the ledger store using Redis.
"""

from .ledger_store import RedisLedgerStore

__all__ = ["RedisLedgerStore"]
