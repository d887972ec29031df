"""In-Memory Implementation of Ledger Store

Keeps serialized records in dictionaries so reads always return fresh
copies. Used for tests and single-process deployments.
"""

import json

from ....core.entities import ContractState, Task, TaskStatus
from ....core.exceptions import ConcurrentModification
from ....core.interfaces import ILedgerStore, WriteBatch


class InMemoryLedgerStore(ILedgerStore):
    """
    Dictionary-backed Ledger Store

    ``commit`` contains no awaits, so a batch is applied atomically with
    respect to other coroutines on the same event loop.
    """

    def __init__(self):
        self._tasks: dict[str, str] = {}
        self._reservations: dict[str, str] = {}
        self._contract: str | None = None

    async def get_task(self, task_id: str) -> Task | None:
        raw = self._tasks.get(task_id)
        if raw is None:
            return None
        return Task.from_dict(json.loads(raw))

    async def get_reservation(self, owner: str) -> int | None:
        raw = self._reservations.get(owner)
        return int(raw) if raw is not None else None

    async def get_contract(self) -> ContractState | None:
        if self._contract is None:
            return None
        return ContractState.from_dict(json.loads(self._contract))

    async def list_tasks(
        self,
        owner: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        tasks = [Task.from_dict(json.loads(raw)) for raw in self._tasks.values()]
        if owner is not None:
            tasks = [t for t in tasks if t.owner == owner]
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        return sorted(tasks, key=lambda t: t.created_at)

    async def list_reservations(self) -> dict[str, int]:
        return {owner: int(raw) for owner, raw in self._reservations.items()}

    async def commit(self, batch: WriteBatch) -> None:
        for owner, expected in batch.expected_reservations.items():
            raw = self._reservations.get(owner)
            current = int(raw) if raw is not None else None
            if current != expected:
                raise ConcurrentModification(
                    f"Reservation for {owner} changed: expected {expected}, found {current}"
                )

        # Serialize everything first so a bad record leaves the store untouched
        tasks = {task_id: json.dumps(task.to_dict()) for task_id, task in batch.tasks.items()}
        reservations = {owner: str(amount) for owner, amount in batch.reservations.items()}
        contract = json.dumps(batch.contract.to_dict()) if batch.contract else None

        for task_id in batch.deleted_tasks:
            self._tasks.pop(task_id, None)
        for owner in batch.deleted_reservations:
            self._reservations.pop(owner, None)
        self._tasks.update(tasks)
        self._reservations.update(reservations)
        if contract is not None:
            self._contract = contract
