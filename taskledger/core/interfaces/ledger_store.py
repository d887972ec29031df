"""Ledger Store Interface

Defines contract for task and reservation persistence.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ..entities import ContractState, Task, TaskStatus


@dataclass
class WriteBatch:
    """
    Pending writes for one ledger operation.

    Stores apply a batch all-or-nothing in ``ILedgerStore.commit``; nothing
    is written while the operation is still validating.

    ``expected_reservations`` holds the reservation values the writes were
    computed from. A store refuses the batch with ConcurrentModification if
    any of them changed in the meantime.
    """

    tasks: dict[str, Task] = field(default_factory=dict)
    reservations: dict[str, int] = field(default_factory=dict)
    deleted_tasks: set[str] = field(default_factory=set)
    deleted_reservations: set[str] = field(default_factory=set)
    contract: ContractState | None = None
    expected_reservations: dict[str, int | None] = field(default_factory=dict)

    def set_task(self, task: Task) -> "WriteBatch":
        self.deleted_tasks.discard(task.task_id)
        self.tasks[task.task_id] = task
        return self

    def delete_task(self, task_id: str) -> "WriteBatch":
        self.tasks.pop(task_id, None)
        self.deleted_tasks.add(task_id)
        return self

    def set_reservation(self, owner: str, amount: int) -> "WriteBatch":
        self.deleted_reservations.discard(owner)
        self.reservations[owner] = amount
        return self

    def delete_reservation(self, owner: str) -> "WriteBatch":
        self.reservations.pop(owner, None)
        self.deleted_reservations.add(owner)
        return self

    def set_contract(self, contract: ContractState) -> "WriteBatch":
        self.contract = contract
        return self

    def expect_reservation(self, owner: str, amount: int | None) -> "WriteBatch":
        """Require the stored reservation to still be ``amount`` (None: absent)"""
        self.expected_reservations[owner] = amount
        return self

    def is_empty(self) -> bool:
        return not (
            self.tasks
            or self.reservations
            or self.deleted_tasks
            or self.deleted_reservations
            or self.contract is not None
        )


class ILedgerStore(ABC):
    """
    Abstract interface for ledger persistence

    Two keyed maps (tasks, reservations) plus the contract state record.
    Infrastructure layer provides concrete implementation (e.g., Redis).
    """

    # ========== Reads ==========

    @abstractmethod
    async def get_task(self, task_id: str) -> Task | None:
        """Find task by ID"""
        pass

    @abstractmethod
    async def get_reservation(self, owner: str) -> int | None:
        """Reserved amount recorded for an owner, None if never reserved"""
        pass

    @abstractmethod
    async def get_contract(self) -> ContractState | None:
        """Contract state, None before initialization"""
        pass

    @abstractmethod
    async def list_tasks(
        self,
        owner: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """List tasks with optional filters"""
        pass

    @abstractmethod
    async def list_reservations(self) -> dict[str, int]:
        """All reservation entries"""
        pass

    # ========== Writes ==========

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> None:
        """
        Apply every write in the batch, or none of them

        Raises:
            ConcurrentModification: If an expected reservation changed
        """
        pass

    async def set_task(self, task: Task) -> None:
        await self.commit(WriteBatch().set_task(task))

    async def delete_task(self, task_id: str) -> None:
        await self.commit(WriteBatch().delete_task(task_id))

    async def set_reservation(self, owner: str, amount: int) -> None:
        await self.commit(WriteBatch().set_reservation(owner, amount))

    async def delete_reservation(self, owner: str) -> None:
        await self.commit(WriteBatch().delete_reservation(owner))
