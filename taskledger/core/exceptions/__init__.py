"""Business Exceptions

Domain-specific exceptions.
"""


class LedgerException(Exception):
    """Base exception for the task ledger"""

    pass


class Unauthorized(LedgerException):
    """Caller lacks the role required for the operation"""

    pass


class TaskNotFound(LedgerException):
    """Task not found"""

    pass


class TaskAlreadyExists(LedgerException):
    """Task identifier already taken"""

    pass


class InvalidAmount(LedgerException, ValueError):
    """Amount is not a non-negative integer"""

    pass


class InsufficientBalance(LedgerException):
    """Spendable balance cannot cover the requested reservation"""

    pass


class InvalidStateTransition(LedgerException):
    """Task status does not allow the requested transition"""

    pass


class InvariantViolation(LedgerException):
    """Internal bookkeeping would become inconsistent"""

    pass


class ExternalCallFailure(LedgerException):
    """Balance oracle query or transfer did not succeed"""

    pass


class LedgerNotInitialized(LedgerException):
    """Contract state has not been initialized yet"""

    pass


class AlreadyInitialized(LedgerException):
    """Contract state can only be initialized once"""

    pass


class ConcurrentModification(LedgerException):
    """Another writer changed the ledger between read and commit"""

    pass
