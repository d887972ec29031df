"""In-Memory Balance Oracle

Deterministic stand-in for the external token ledger. Balances move on
successful transfers, split evenly between recipients with the remainder
going to the first ones.
"""

from dataclasses import dataclass
from uuid import uuid4

import structlog

from ...core.interfaces import IBalanceOracle, TransferResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class RecordedTransfer:
    """A transfer the oracle executed"""

    transfer_id: str
    amount: int
    sender: str
    recipients: tuple[str, ...]


class InMemoryBalanceOracle(IBalanceOracle):
    """Balance oracle backed by a dictionary

    Results of successful transfers are remembered by idempotency key;
    replaying a key returns the first result without moving tokens again.
    """

    def __init__(self, owner: str, balances: dict[str, int] | None = None):
        self._owner = owner
        self.balances: dict[str, int] = dict(balances or {})
        self.transfers: list[RecordedTransfer] = []
        self.fail_transfers = False
        self._completed: dict[str, TransferResult] = {}

    async def balance_of(self, principal: str) -> int:
        return self.balances.get(principal, 0)

    async def owner(self) -> str:
        return self._owner

    async def transfer(
        self,
        amount: int,
        sender: str,
        recipients: list[str],
        idempotency_key: str | None = None,
    ) -> TransferResult:
        if idempotency_key and idempotency_key in self._completed:
            logger.debug("oracle_transfer_replayed", idempotency_key=idempotency_key)
            return self._completed[idempotency_key]
        if self.fail_transfers:
            return TransferResult(success=False, message="Transfer rejected", error="transfers disabled")
        if amount > 0 and not recipients:
            return TransferResult(success=False, message="Transfer rejected", error="no recipients")
        if self.balances.get(sender, 0) < amount:
            return TransferResult(success=False, message="Transfer rejected", error="insufficient funds")

        self.balances[sender] = self.balances.get(sender, 0) - amount
        if recipients:
            share, remainder = divmod(amount, len(recipients))
            for index, recipient in enumerate(recipients):
                payout = share + (1 if index < remainder else 0)
                self.balances[recipient] = self.balances.get(recipient, 0) + payout

        transfer_id = f"tx_{uuid4().hex[:12]}"
        self.transfers.append(
            RecordedTransfer(
                transfer_id=transfer_id,
                amount=amount,
                sender=sender,
                recipients=tuple(recipients),
            )
        )
        logger.debug("oracle_transfer", transfer_id=transfer_id, amount=amount, sender=sender)
        result = TransferResult(success=True, message="Transferred", transfer_id=transfer_id)
        if idempotency_key:
            self._completed[idempotency_key] = result
        return result
