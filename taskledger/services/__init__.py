"""Service Layer

Business logic and clients for external collaborators.
"""

from .balance_oracle_client import HttpBalanceOracle
from .task_ledger_service import TaskLedgerService, close_idempotency_key, parse_amount

__all__ = ["HttpBalanceOracle", "TaskLedgerService", "close_idempotency_key", "parse_amount"]
