"""Task Ledger Service

Business logic for the task lifecycle and the token reservation ledger.
"""

import asyncio
from collections import defaultdict

import structlog

from ..core.entities import CallContext, ContractState, ReservationDiscrepancy, Task, TaskStatus
from ..core.exceptions import (
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
from ..core.interfaces import (
    BalanceOracleResolver,
    IBalanceOracle,
    ILedgerStore,
    INotifier,
    NotificationTopic,
    TransferResult,
    WriteBatch,
)

logger = structlog.get_logger()


def parse_amount(amount) -> int:
    """
    Normalize a token amount

    Accepts ints and ASCII base-10 digit strings. Booleans, floats and negative
    values are rejected.

    Raises:
        InvalidAmount: If the value is not a non-negative integer
    """
    if isinstance(amount, bool):
        raise InvalidAmount("amount must be an integer")
    if isinstance(amount, str):
        text = amount.strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidAmount(f"amount must be a non-negative integer: {amount!r}")
        return int(text)
    if not isinstance(amount, int):
        raise InvalidAmount(f"amount must be an integer, got {type(amount).__name__}")
    if amount < 0:
        raise InvalidAmount("amount cannot be negative")
    return amount


def close_idempotency_key(task_id: str) -> str:
    """Idempotency key for the transfer that releases a task's tokens"""
    return f"task-close:{task_id}"


class TaskLedgerService:
    """
    Task Ledger Service

    Owns the task map and the per-owner reservation ledger. Every mutating
    operation identifies the caller from the CallContext, authorizes,
    validates against the balance oracle, commits one WriteBatch and then
    emits a notification.

    Invariant: for every owner, the reservation equals the sum of
    reserved_amount over that owner's tasks that are not CLOSED.
    """

    def __init__(
        self,
        store: ILedgerStore,
        oracle_resolver: BalanceOracleResolver,
        notifier: INotifier | None = None,
    ):
        """
        Initialize Task Ledger Service

        Args:
            store: Ledger store for tasks, reservations and contract state
            oracle_resolver: Maps the configured ledger address to a balance oracle
            notifier: Event sink (optional)
        """
        self.store = store
        self.resolve_oracle = oracle_resolver
        self.notifier = notifier
        # Serializes read-modify-write of the reservation map in this process;
        # stores reject batches whose expected reservations went stale
        self._lock = asyncio.Lock()

    # ========== Contract Administration ==========

    async def initialize(self, ctx: CallContext, ledger_address: str) -> ContractState:
        """
        Configure the contract

        The caller becomes the administrator.

        Raises:
            AlreadyInitialized: If the contract was configured before
        """
        if not ledger_address:
            raise ValueError("ledger_address cannot be empty")

        async with self._lock:
            if await self.store.get_contract() is not None:
                raise AlreadyInitialized("Contract already initialized")

            contract = ContractState(administrator=ctx.caller, ledger_address=ledger_address)
            await self.store.commit(WriteBatch().set_contract(contract))

        logger.info("contract_initialized", administrator=ctx.caller, ledger_address=ledger_address)
        await self._notify(NotificationTopic.CONTRACT_ADDRESS, {"contract_address": ledger_address})
        return contract

    async def set_ledger_address(self, ctx: CallContext, ledger_address: str) -> ContractState:
        """
        Point the contract at another token ledger

        Raises:
            Unauthorized: If the caller is not the administrator
        """
        if not ledger_address:
            raise ValueError("ledger_address cannot be empty")

        async with self._lock:
            contract = await self._require_contract()
            if ctx.caller != contract.administrator:
                raise Unauthorized("Only the administrator can modify the ledger address")

            contract.ledger_address = ledger_address
            await self.store.commit(WriteBatch().set_contract(contract))

        logger.info("ledger_address_changed", ledger_address=ledger_address)
        return contract

    modify_contract_address = set_ledger_address

    async def get_contract(self) -> ContractState:
        """
        Get contract state

        Raises:
            LedgerNotInitialized: If initialize has not run yet
        """
        return await self._require_contract()

    async def owner(self) -> str:
        """Administrator of record"""
        return (await self._require_contract()).administrator

    async def ledger_address(self) -> str:
        """Address of the balance oracle currently in use"""
        return (await self._require_contract()).ledger_address

    # ========== Task Lifecycle ==========

    async def create_task(self, ctx: CallContext, task_id: str, amount, task_owner: str) -> Task:
        """
        Create a task and reserve tokens for it

        Args:
            ctx: Call context
            task_id: Caller-supplied unique identifier
            amount: Tokens to reserve (non-negative integer)
            task_owner: Principal whose balance backs the reservation

        Returns:
            Created task

        Raises:
            InvalidAmount: If amount is not a non-negative integer
            Unauthorized: If the caller does not control the token ledger
            TaskAlreadyExists: If task_id is taken
            InsufficientBalance: If the balance cannot cover old and new reservations
            ExternalCallFailure: If the balance oracle cannot be queried
            ConcurrentModification: If another writer changed the reservation
        """
        amount = parse_amount(amount)
        if not task_id:
            raise ValueError("task_id cannot be empty")
        if not task_owner:
            raise ValueError("task_owner cannot be empty")

        async with self._lock:
            oracle = await self._oracle()

            wallet_owner = await self._query(oracle.owner, "owner")
            if ctx.caller != wallet_owner:
                raise Unauthorized("Not authorized to create a task")

            if await self.store.get_task(task_id) is not None:
                raise TaskAlreadyExists(f"Task {task_id} already exists")

            balance = await self._query(lambda: oracle.balance_of(task_owner), "balance_of")
            recorded = await self.store.get_reservation(task_owner)
            already_reserved = recorded or 0

            # Both checks guard against a stale balance read
            if balance < amount or balance < amount + already_reserved:
                logger.info(
                    "reservation_rejected",
                    task_id=task_id,
                    owner=task_owner,
                    balance=balance,
                    requested=amount,
                    reserved=already_reserved,
                )
                raise InsufficientBalance(
                    f"Insufficient token balance: {balance} < {amount} + {already_reserved}"
                )

            task = Task(task_id=task_id, owner=task_owner, reserved_amount=amount)
            await self.store.commit(
                WriteBatch()
                .set_task(task)
                .set_reservation(task_owner, already_reserved + amount)
                .expect_reservation(task_owner, recorded)
            )

        logger.info("task_created", task_id=task_id, owner=task_owner, amount=amount)
        await self._notify_task(task)
        return task

    async def add_assignee(self, ctx: CallContext, task_id: str, assignee: str) -> Task:
        """
        Append an assignee to a task

        Raises:
            TaskNotFound: If task not found
            Unauthorized: If the caller is not the task owner
            InvalidStateTransition: If the task is closing or closed
        """
        if not assignee:
            raise ValueError("assignee cannot be empty")

        async with self._lock:
            task = await self.get_task(task_id)
            if ctx.caller != task.owner:
                raise Unauthorized("Only the task owner can add assignees")

            task.add_assignee(assignee)
            await self.store.set_task(task)

        logger.info("assignee_added", task_id=task_id, assignee=assignee)
        await self._notify_task(task)
        return task

    async def mark_completed(self, ctx: CallContext, task_id: str) -> Task:
        """
        Mark a task as completed

        Raises:
            TaskNotFound: If task not found
            Unauthorized: If the caller is not the task owner
            InvalidStateTransition: If the task is not NEW
        """
        async with self._lock:
            task = await self.get_task(task_id)
            if ctx.caller != task.owner:
                raise Unauthorized("Only the task owner can complete a task")

            task.mark_completed()
            await self.store.set_task(task)

        logger.info("task_completed", task_id=task_id)
        await self._notify_task(task)
        return task

    async def mark_closed(self, ctx: CallContext, task_id: str) -> Task:
        """
        Close a task and release its tokens to the assignees

        Two-phase: the task is committed as CLOSING, the transfer runs, and
        only a successful transfer finalizes CLOSED and frees the owner's
        reservation. A failed transfer puts the task back in its previous
        status and leaves the reservation untouched. When the ledger cannot
        say whether the transfer happened, the task stays CLOSING; closing
        it again resends the transfer under the same idempotency key.

        Notifications for every state the task passed through are emitted
        after the lock is released.

        Raises:
            Unauthorized: If the caller is not the administrator
            TaskNotFound: If task not found
            InvalidStateTransition: If the task is already closed
            InvariantViolation: If the reservation would go negative
            ExternalCallFailure: If the transfer did not succeed
            ConcurrentModification: If another writer changed the reservation
        """
        events: list[dict] = []
        failure: LedgerException | None = None
        cause: Exception | None = None

        async with self._lock:
            contract = await self._require_contract()
            if ctx.caller != contract.administrator:
                raise Unauthorized("Only the administrator can close a task")

            task = await self.get_task(task_id)
            if task.is_closed():
                raise InvalidStateTransition(f"Task {task_id} is already closed")

            recorded = await self.store.get_reservation(task.owner)
            reserved = recorded or 0
            remaining = reserved - task.reserved_amount
            if remaining < 0:
                logger.error(
                    "reservation_underflow",
                    task_id=task_id,
                    owner=task.owner,
                    reserved=reserved,
                    amount=task.reserved_amount,
                )
                raise InvariantViolation(
                    f"Reservation for {task.owner} would become negative: "
                    f"{reserved} - {task.reserved_amount}"
                )

            oracle = self.resolve_oracle(contract.ledger_address)

            # Phase 1: tentative close
            task.begin_close()
            await self.store.set_task(task)
            events.append(self._task_event(task))

            # Phase 2: release tokens
            try:
                result = await oracle.transfer(
                    task.reserved_amount,
                    task.owner,
                    list(task.assignees),
                    idempotency_key=close_idempotency_key(task_id),
                )
            except Exception as e:
                cause = e
                result = TransferResult(success=False, message="Transfer raised", error=str(e))

            if result.success:
                task.finish_close()
                try:
                    await self.store.commit(
                        WriteBatch()
                        .set_task(task)
                        .set_reservation(task.owner, remaining)
                        .expect_reservation(task.owner, recorded)
                    )
                except ConcurrentModification as e:
                    # Transfer is done; closing again replays it by idempotency key
                    logger.error("task_close_commit_conflict", task_id=task_id, error=str(e))
                    failure = e
                else:
                    events.append(self._task_event(task))
            elif result.outcome_unknown:
                logger.error(
                    "task_close_outcome_unknown",
                    task_id=task_id,
                    owner=task.owner,
                    amount=task.reserved_amount,
                    error=result.error,
                )
                failure = ExternalCallFailure(
                    f"Token transfer for task {task_id} has an unknown outcome; "
                    f"the task stays {TaskStatus.CLOSING.value} until closed again: "
                    f"{result.error or result.message}"
                )
            else:
                task.abort_close()
                await self.store.set_task(task)
                logger.error(
                    "task_close_transfer_failed",
                    task_id=task_id,
                    owner=task.owner,
                    amount=task.reserved_amount,
                    error=result.error,
                )
                events.append(self._task_event(task))
                failure = ExternalCallFailure(
                    f"Token transfer for task {task_id} failed: {result.error or result.message}"
                )

        for payload in events:
            await self._notify(NotificationTopic.TASK, payload)
        if failure is not None:
            if cause is not None:
                raise failure from cause
            raise failure

        logger.info(
            "task_closed",
            task_id=task_id,
            owner=task.owner,
            amount=task.reserved_amount,
            transfer_id=result.transfer_id,
        )
        return task

    # ========== Queries ==========

    async def get_task(self, task_id: str) -> Task:
        """
        Get a task by ID

        Raises:
            TaskNotFound: If task not found
        """
        task = await self.store.get_task(task_id)
        if task is None:
            raise TaskNotFound(f"Task {task_id} not found")
        return task

    async def list_tasks(
        self,
        owner: str | None = None,
        status: TaskStatus | None = None,
    ) -> list[Task]:
        """List tasks, optionally filtered by owner and status"""
        return await self.store.list_tasks(owner=owner, status=status)

    async def get_reservation(self, owner: str) -> int:
        """Tokens currently reserved for an owner"""
        return await self.store.get_reservation(owner) or 0

    async def audit_reservations(self) -> list[ReservationDiscrepancy]:
        """
        Compare the reservation ledger against the open tasks

        Returns:
            One entry per owner whose recorded reservation differs from the
            sum of reserved amounts over their non-closed tasks
        """
        expected: dict[str, int] = defaultdict(int)
        for task in await self.store.list_tasks():
            if task.holds_reservation():
                expected[task.owner] += task.reserved_amount

        recorded = await self.store.list_reservations()
        discrepancies = [
            ReservationDiscrepancy(
                owner=owner,
                recorded=recorded.get(owner, 0),
                expected=expected.get(owner, 0),
            )
            for owner in sorted(set(expected) | set(recorded))
            if recorded.get(owner, 0) != expected.get(owner, 0)
        ]
        if discrepancies:
            logger.warning("reservation_audit_mismatch", owners=[d.owner for d in discrepancies])
        return discrepancies

    # ========== Helpers ==========

    async def _require_contract(self) -> ContractState:
        contract = await self.store.get_contract()
        if contract is None:
            raise LedgerNotInitialized("Contract not initialized")
        return contract

    async def _oracle(self) -> IBalanceOracle:
        contract = await self._require_contract()
        return self.resolve_oracle(contract.ledger_address)

    async def _query(self, call, name: str):
        """Run a read-only oracle call, surfacing any failure as ExternalCallFailure"""
        try:
            return await call()
        except LedgerException:
            raise
        except Exception as e:
            logger.error("oracle_query_failed", query=name, error=str(e))
            raise ExternalCallFailure(f"Balance oracle {name} query failed: {e}") from e

    @staticmethod
    def _task_event(task: Task) -> dict:
        return {"id": task.task_id, "task": task.to_dict()}

    async def _notify_task(self, task: Task) -> None:
        await self._notify(NotificationTopic.TASK, self._task_event(task))

    async def _notify(self, topic: NotificationTopic, payload: dict) -> None:
        if not self.notifier:
            return
        try:
            await self.notifier.emit(topic, payload)
        except Exception as e:
            logger.warning("notification_dropped", topic=topic.value, error=str(e))
