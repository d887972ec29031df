"""Contract-level state and call context"""

from dataclasses import dataclass, field
from datetime import UTC, datetime


@dataclass(frozen=True)
class CallContext:
    """
    Identity of whoever invokes a ledger operation.

    Resolved by the surrounding environment (signature check, auth token, ...)
    and passed explicitly into every operation.
    """

    caller: str

    def __post_init__(self):
        if not self.caller:
            raise ValueError("caller cannot be empty")


@dataclass
class ContractState:
    """Administrator and external ledger reference, set once at initialization"""

    administrator: str
    ledger_address: str
    initialized_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "administrator": self.administrator,
            "ledger_address": self.ledger_address,
            "initialized_at": self.initialized_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ContractState":
        data = data.copy()
        if isinstance(data.get("initialized_at"), str):
            data["initialized_at"] = datetime.fromisoformat(data["initialized_at"])
        return cls(**data)


@dataclass(frozen=True)
class ReservationDiscrepancy:
    """A reservation entry that disagrees with the sum of its owner's open tasks"""

    owner: str
    recorded: int
    expected: int
