"""Balance Oracle Interface

The external token ledger that holds real balances and moves tokens.
The task ledger never mutates real balances itself.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from pydantic import BaseModel


class TransferResult(BaseModel):
    """Outcome of a token transfer

    ``outcome_unknown`` marks a failure where the ledger may still have
    executed the transfer (e.g. a timeout); the caller must not assume the
    tokens stayed put.
    """

    success: bool
    message: str = ""
    transfer_id: str | None = None
    error: str | None = None
    outcome_unknown: bool = False


class IBalanceOracle(ABC):
    """Abstract interface for the external token ledger"""

    @abstractmethod
    async def balance_of(self, principal: str) -> int:
        """Spendable balance of a principal (side-effect free)"""
        pass

    @abstractmethod
    async def owner(self) -> str:
        """Principal controlling the external ledger"""
        pass

    @abstractmethod
    async def transfer(
        self,
        amount: int,
        sender: str,
        recipients: list[str],
        idempotency_key: str | None = None,
    ) -> TransferResult:
        """
        Move ``amount`` tokens from ``sender`` to ``recipients``

        A repeated call with the same ``idempotency_key`` must not move
        tokens a second time.
        """
        pass


# Maps the configured ledger address to the oracle serving it
BalanceOracleResolver = Callable[[str], IBalanceOracle]
