"""Redis Implementation of Ledger Store

Concrete implementation using Redis for task and reservation persistence.
"""

import json

import redis.asyncio as redis  # type: ignore[import-untyped]
from redis.exceptions import WatchError  # type: ignore[import-untyped]

from ....core.entities import ContractState, Task, TaskStatus
from ....core.exceptions import ConcurrentModification
from ....core.interfaces import ILedgerStore, WriteBatch


class RedisLedgerStore(ILedgerStore):
    """
    Redis-based Ledger Store

    Keys:
    - {prefix}:tasks         hash task_id -> task JSON
    - {prefix}:reservations  hash owner -> base-10 amount
    - {prefix}:contract      string contract state JSON

    Batches are applied with a MULTI/EXEC pipeline. Batches carrying
    expected reservations WATCH the reservations hash first, so two
    processes sharing one Redis cannot both commit from the same stale
    reservation. Any write to the hash aborts a watched commit, which
    callers see as ConcurrentModification and may retry.
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "taskledger"):
        """
        Initialize Redis Ledger Store

        Args:
            redis_client: Redis async client (decode_responses=True expected)
            key_prefix: Namespace for all keys
        """
        self.redis = redis_client
        self.tasks_key = f"{key_prefix}:tasks"
        self.reservations_key = f"{key_prefix}:reservations"
        self.contract_key = f"{key_prefix}:contract"

    @staticmethod
    def _decode(value):
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def get_task(self, task_id: str) -> Task | None:
        raw = await self.redis.hget(self.tasks_key, task_id)
        if not raw:
            return None
        return Task.from_dict(json.loads(self._decode(raw)))

    async def get_reservation(self, owner: str) -> int | None:
        raw = await self.redis.hget(self.reservations_key, owner)
        if raw is None:
            return None
        return int(self._decode(raw))

    async def get_contract(self) -> ContractState | None:
        raw = await self.redis.get(self.contract_key)
        if not raw:
            return None
        return ContractState.from_dict(json.loads(self._decode(raw)))

    async def list_tasks(
        self,
        owner: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        raw_tasks = await self.redis.hgetall(self.tasks_key)
        tasks = [Task.from_dict(json.loads(self._decode(raw))) for raw in raw_tasks.values()]
        if owner is not None:
            tasks = [t for t in tasks if t.owner == owner]
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        return sorted(tasks, key=lambda t: t.created_at)

    async def list_reservations(self) -> dict[str, int]:
        raw = await self.redis.hgetall(self.reservations_key)
        return {self._decode(owner): int(self._decode(amount)) for owner, amount in raw.items()}

    async def commit(self, batch: WriteBatch) -> None:
        if batch.is_empty():
            return

        async with self.redis.pipeline(transaction=True) as pipe:
            if batch.expected_reservations:
                # EXEC fails with WatchError if another writer touches the hash
                await pipe.watch(self.reservations_key)
                await self._check_expected(pipe, batch.expected_reservations)
                pipe.multi()

            if batch.deleted_tasks:
                pipe.hdel(self.tasks_key, *batch.deleted_tasks)
            if batch.deleted_reservations:
                pipe.hdel(self.reservations_key, *batch.deleted_reservations)
            if batch.tasks:
                pipe.hset(
                    self.tasks_key,
                    mapping={
                        task_id: json.dumps(task.to_dict()) for task_id, task in batch.tasks.items()
                    },
                )
            if batch.reservations:
                pipe.hset(
                    self.reservations_key,
                    mapping={owner: str(amount) for owner, amount in batch.reservations.items()},
                )
            if batch.contract is not None:
                pipe.set(self.contract_key, json.dumps(batch.contract.to_dict()))

            try:
                await pipe.execute()
            except WatchError as e:
                raise ConcurrentModification("Reservations changed during commit") from e

    async def _check_expected(self, pipe, expected: dict[str, int | None]) -> None:
        owners = list(expected)
        values = await pipe.hmget(self.reservations_key, owners)
        for owner, raw in zip(owners, values):
            current = int(self._decode(raw)) if raw is not None else None
            if current != expected[owner]:
                raise ConcurrentModification(
                    f"Reservation for {owner} changed: expected {expected[owner]}, found {current}"
                )
