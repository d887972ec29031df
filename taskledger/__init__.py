"""
Task Ledger

Task tracking coupled to escrowed token balances.

Architecture:
┌─────────────────────────────────────────────────────────┐
│  Routes (FastAPI)                                        │
│  - Bearer token -> CallContext                           │
└─────────────────────────────────────────────────────────┘
                        │ calls
                        ▼
┌─────────────────────────────────────────────────────────┐
│  TaskLedgerService                                       │
│  - create / assign / complete / close                    │
│  - per-owner reservation ledger                          │
└─────────────────────────────────────────────────────────┘
                        │ ports
                        ▼
┌─────────────────────────────────────────────────────────┐
│  ILedgerStore    - memory / Redis                        │
│  IBalanceOracle  - token ledger (HTTP / memory)          │
│  INotifier       - webhook / structured log              │
└─────────────────────────────────────────────────────────┘

The token ledger holds real balances and executes transfers; this package
only keeps its own reservation bookkeeping.
"""

__version__ = "0.1.0"

from .config import Settings, get_settings
from .core.entities import CallContext, ContractState, ReservationDiscrepancy, Task, TaskStatus
from .core.exceptions import (
    AlreadyInitialized,
    ConcurrentModification,
    ExternalCallFailure,
    InsufficientBalance,
    InvalidAmount,
    InvalidStateTransition,
    InvariantViolation,
    LedgerException,
    LedgerNotInitialized,
    TaskAlreadyExists,
    TaskNotFound,
    Unauthorized,
)
from .infrastructure.oracle import InMemoryBalanceOracle
from .infrastructure.persistence import InMemoryLedgerStore, RedisLedgerStore
from .services import HttpBalanceOracle, TaskLedgerService

__all__ = [
    # Version
    "__version__",
    # Config
    "Settings",
    "get_settings",
    # Entities
    "CallContext",
    "ContractState",
    "ReservationDiscrepancy",
    "Task",
    "TaskStatus",
    # Errors
    "LedgerException",
    "Unauthorized",
    "TaskNotFound",
    "TaskAlreadyExists",
    "InvalidAmount",
    "InsufficientBalance",
    "InvalidStateTransition",
    "InvariantViolation",
    "ExternalCallFailure",
    "LedgerNotInitialized",
    "AlreadyInitialized",
    "ConcurrentModification",
    # Service
    "TaskLedgerService",
    # Adapters
    "HttpBalanceOracle",
    "InMemoryBalanceOracle",
    "InMemoryLedgerStore",
    "RedisLedgerStore",
]
