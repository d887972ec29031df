"""Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

from unittest.mock import AsyncMock

import pytest

from taskledger.core.entities import CallContext
from taskledger.core.interfaces import INotifier
from taskledger.infrastructure.oracle import InMemoryBalanceOracle
from taskledger.infrastructure.persistence import InMemoryLedgerStore
from taskledger.services import TaskLedgerService

ADMIN = "admin"
LEDGER_ADDRESS = "http://ledger.test"


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def store() -> InMemoryLedgerStore:
    """Empty in-memory ledger store"""
    return InMemoryLedgerStore()


@pytest.fixture
def oracle() -> InMemoryBalanceOracle:
    """Token ledger controlled by the administrator"""
    return InMemoryBalanceOracle(
        owner=ADMIN,
        balances={"alice": 50, "dave": 150, "erin": 1000},
    )


@pytest.fixture
def mock_notifier() -> INotifier:
    """Mock Notifier for testing"""
    return AsyncMock(spec=INotifier)


@pytest.fixture
def service(store, oracle, mock_notifier) -> TaskLedgerService:
    """TaskLedgerService wired to in-memory collaborators (not initialized)"""
    return TaskLedgerService(
        store=store,
        oracle_resolver=lambda address: oracle,
        notifier=mock_notifier,
    )


@pytest.fixture
async def ledger(service, mock_notifier) -> TaskLedgerService:
    """Initialized TaskLedgerService with the administrator as caller of init"""
    await service.initialize(CallContext(caller=ADMIN), LEDGER_ADDRESS)
    mock_notifier.emit.reset_mock()
    return service