"""Domain Entities

Pure business objects without framework dependencies.
These represent the core business concepts of the task ledger.
"""

from .contract import CallContext, ContractState, ReservationDiscrepancy
from .task import Task, TaskStatus

__all__ = ["CallContext", "ContractState", "ReservationDiscrepancy", "Task", "TaskStatus"]
