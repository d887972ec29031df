"""In-Memory Persistence Layer"""

from .ledger_store import InMemoryLedgerStore

__all__ = ["InMemoryLedgerStore"]
