"""Port Interfaces

Abstract interfaces for storage and external collaborators (Port pattern in
Hexagonal Architecture). Infrastructure layer implements these interfaces.
"""

from .balance_oracle import BalanceOracleResolver, IBalanceOracle, TransferResult
from .ledger_store import ILedgerStore, WriteBatch
from .notifier import INotifier, NotificationTopic

__all__ = [
    "BalanceOracleResolver",
    "IBalanceOracle",
    "ILedgerStore",
    "INotifier",
    "NotificationTopic",
    "TransferResult",
    "WriteBatch",
]
