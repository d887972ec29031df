"""Balance Oracle adapters"""

from .memory import InMemoryBalanceOracle, RecordedTransfer

__all__ = ["InMemoryBalanceOracle", "RecordedTransfer"]
